"""Unit tests for the discovery stage."""

from datetime import date

import pytest

from eventscout.config.settings import Limits, Timeouts
from eventscout.errors import DiscoveryError
from eventscout.models import CandidateMetadata, DiscoverySource, PipelineContext
from eventscout.pipeline.stages import EventDiscoverer
from eventscout.providers.base import SearchItem

from conftest import FakeProvider


def items(*urls: str) -> list[SearchItem]:
    return [SearchItem(url=url, title=f"Title for {url}") for url in urls]


class TestDiscovery:
    """Tests for EventDiscoverer.discover."""

    @pytest.mark.asyncio
    async def test_legal_compliance_summit_scenario(self, config):
        """3 + 2 hits with one shared URL give exactly 4 unique candidates."""
        cse = FakeProvider("cse", items(
            "https://a.example/summit",
            "https://b.example/summit",
            "https://shared.example/summit",
        ))
        crawl = FakeProvider("firecrawl", items(
            "https://shared.example/summit/",
            "https://c.example/summit",
        ), delay=0.01)
        context = PipelineContext(query="legal compliance summit", config=config)

        result = await EventDiscoverer(config, [cse, crawl]).discover(context.query, None, context)

        assert len(result.candidates) == 4
        assert len({c.url.rstrip("/") for c in result.candidates}) == 4
        assert result.providers_used == ["cse", "firecrawl"]

    @pytest.mark.asyncio
    async def test_first_seen_provider_tag_wins(self, config):
        slow = FakeProvider("cse", items("https://shared.example"), delay=0.02)
        fast = FakeProvider("firecrawl", items("https://shared.example"))
        context = PipelineContext(query="summit", config=config)

        result = await EventDiscoverer(config, [slow, fast]).discover("summit", None, context)

        assert len(result.candidates) == 1
        assert result.candidates[0].source == DiscoverySource.FIRECRAWL
        assert result.candidates[0].id.startswith("firecrawl_")

    @pytest.mark.asyncio
    async def test_provider_failure_degrades(self, config):
        broken = FakeProvider("cse", exc=RuntimeError("quota exceeded"))
        working = FakeProvider("firecrawl", items("https://a.example/event"))
        context = PipelineContext(query="summit", config=config)

        result = await EventDiscoverer(config, [broken, working]).discover("summit", None, context)

        assert [c.url for c in result.candidates] == ["https://a.example/event"]
        failures = [t for t in context.telemetry.discovery if t.error]
        assert failures[0].provider == "cse"
        assert "quota" in failures[0].error

    @pytest.mark.asyncio
    async def test_provider_timeout(self, config):
        fast_config = config.model_copy(update={"timeouts": Timeouts(discovery=20)})
        slow = FakeProvider("cse", items("https://slow.example"), delay=0.5)
        context = PipelineContext(query="summit", config=fast_config)

        result = await EventDiscoverer(fast_config, [slow]).discover("summit", None, context)

        assert result.candidates == []
        assert context.telemetry.discovery[0].timeout is True

    @pytest.mark.asyncio
    async def test_disabled_sources_are_skipped(self, config):
        curated = FakeProvider("curated", items("https://curated.example"))
        cse = FakeProvider("cse", items("https://cse.example"))
        context = PipelineContext(query="summit", config=config)

        result = await EventDiscoverer(config, [curated, cse]).discover("summit", None, context)

        assert [c.url for c in result.candidates] == ["https://cse.example"]
        assert curated.calls == []

    @pytest.mark.asyncio
    async def test_no_enabled_provider_raises(self, config):
        context = PipelineContext(query="summit", config=config)
        with pytest.raises(DiscoveryError):
            await EventDiscoverer(config, [FakeProvider("curated")]).discover("summit", None, context)

    @pytest.mark.asyncio
    async def test_truncates_to_max_candidates(self, config):
        small = config.model_copy(update={"limits": Limits(max_candidates=3)})
        provider = FakeProvider("cse", items(*[f"https://example.com/{i}" for i in range(10)]))
        context = PipelineContext(query="summit", config=small)

        result = await EventDiscoverer(small, [provider]).discover("summit", None, context)

        assert len(result.candidates) == 3
        assert provider.calls[0].limit == 3

    @pytest.mark.asyncio
    async def test_items_without_url_are_skipped(self, config):
        provider = FakeProvider("cse", [SearchItem(title="No link"), SearchItem(url="https://ok.example")])
        context = PipelineContext(query="summit", config=config)

        result = await EventDiscoverer(config, [provider]).discover("summit", None, context)

        assert [c.url for c in result.candidates] == ["https://ok.example"]

    @pytest.mark.asyncio
    async def test_search_params_carry_country_context(self, config):
        provider = FakeProvider("cse", [])
        context = PipelineContext(query="summit", country="DE", config=config,
                                  date_from=date(2027, 1, 1), date_to=date(2027, 12, 31))

        await EventDiscoverer(config, [provider]).discover("summit", "DE", context)

        params = provider.calls[0]
        assert params.country == "DE"
        assert params.country_context.tld == ".de"
        assert params.date_to == date(2027, 12, 31)

    @pytest.mark.asyncio
    async def test_country_override_recomputes_context(self, config):
        provider = FakeProvider("cse", [])
        context = PipelineContext(query="summit", country="DE", config=config)

        await EventDiscoverer(config, [provider]).discover("summit", "France", context)

        assert provider.calls[0].country == "FR"
        assert provider.calls[0].country_context.iso2 == "FR"


class TestCrawlHints:
    """Tests for crawl-provider specific handling."""

    @pytest.mark.asyncio
    async def test_hints_copied_to_metadata(self, config):
        crawl = FakeProvider("firecrawl", [SearchItem(
            url="https://summit.de/2027",
            title="Legal Summit",
            content="# Legal Summit",
            links=["https://summit.de/agenda"],
            extracted_date="2027-03-12",
            confidence=0.9,
        )])
        context = PipelineContext(query="summit", country="DE", config=config)

        result = await EventDiscoverer(config, [crawl]).discover("summit", "DE", context)

        metadata = result.candidates[0].metadata
        assert metadata.scraped_content == "# Legal Summit"
        assert metadata.scraped_links == ["https://summit.de/agenda"]
        assert metadata.extracted_date == "2027-03-12"
        assert metadata.extra["provider_confidence"] == 0.9
        assert metadata.original_query == "summit"
        assert metadata.geo_reason is None

    @pytest.mark.asyncio
    async def test_tld_mismatch_is_recorded(self, config):
        crawl = FakeProvider("firecrawl", items("https://summit.com/2027"))
        context = PipelineContext(query="summit", country="DE", config=config)

        result = await EventDiscoverer(config, [crawl]).discover("summit", "DE", context)

        assert "does not match DE" in result.candidates[0].metadata.geo_reason

    @pytest.mark.asyncio
    async def test_out_of_window_date_dropped(self, config):
        crawl = FakeProvider("firecrawl", [
            SearchItem(url="https://old.example", extracted_date="2025-01-10"),
            SearchItem(url="https://new.example", extracted_date="2027-03-12"),
            SearchItem(url="https://undated.example"),
        ])
        context = PipelineContext(query="summit", config=config,
                                  date_from=date(2027, 1, 1), date_to=date(2027, 12, 31))

        result = await EventDiscoverer(config, [crawl]).discover("summit", None, context)

        assert [c.url for c in result.candidates] == ["https://new.example", "https://undated.example"]
        # dropped items only leave a log line; survivors carry no date verdict
        assert "date_reason" not in CandidateMetadata.model_fields

    @pytest.mark.asyncio
    async def test_search_engine_hits_not_date_filtered(self, config):
        cse = FakeProvider("cse", [SearchItem(url="https://old.example", extracted_date="2025-01-10")])
        context = PipelineContext(query="summit", config=config,
                                  date_from=date(2027, 1, 1), date_to=date(2027, 12, 31))

        result = await EventDiscoverer(config, [cse]).discover("summit", None, context)

        assert len(result.candidates) == 1
