"""Unit tests for deterministic page parsing."""

import asyncio

import pytest

from eventscout.errors import ParsingError
from eventscout.models import CandidateStatus, EvidenceSource, ParseMethod
from eventscout.pipeline.stages import EventParser
from eventscout.pipeline.stages.parse import (
    is_generic_title,
    is_valid_description,
    is_valid_location,
)
from eventscout.providers.base import FetchError

from conftest import FakeFetcher, make_candidate


@pytest.fixture
def parser(config) -> EventParser:
    return EventParser(config, FakeFetcher())


class TestParseHtml:
    """Tests for EventParser.parse_html."""

    def test_title_only_page(self, parser, title_only_page):
        result = parser.parse_html(title_only_page)

        assert result.title == "Annual Legal Compliance Summit 2027"
        assert result.confidence == 0.3
        assert len(result.evidence) == 1
        assert result.evidence[0].field == "title"
        assert result.evidence[0].quoted_text == "<title>Annual Legal Compliance Summit 2027</title>"

    def test_full_event_page(self, parser, event_page):
        result = parser.parse_html(event_page)

        assert result.title == "Legal Compliance Summit 2027"
        assert result.description.startswith("The annual gathering")
        assert result.date == "12-14 March 2027"
        assert (result.start_iso, result.end_iso) == ("2027-03-12", "2027-03-14")
        assert result.location == "Berlin, Germany"
        assert result.venue == "Estrel Congress Center"
        assert [s.name for s in result.speakers] == ["Anna Schmidt", "Thomas Weber"]
        assert result.confidence == 1.0
        assert result.parse_method == ParseMethod.DETERMINISTIC

    def test_evidence_quotes_literal_source(self, parser, event_page):
        result = parser.parse_html(event_page)
        evidence = {e.field: e for e in result.evidence}

        assert set(evidence) == {"title", "description", "date", "location", "venue", "speakers"}
        for item in evidence.values():
            assert item.quoted_text
        assert evidence["title"].quoted_text in event_page
        assert evidence["date"].confidence == 0.8
        assert evidence["speakers"].confidence == 0.7

    def test_empty_page(self, parser):
        result = parser.parse_html("<html><body></body></html>")
        assert result.confidence == 0.0
        assert result.evidence == []

    def test_meta_tags_in_either_attribute_order(self, parser):
        page = (
            '<meta content="Compliance Leaders Forum Europe" property="og:title">'
            '<meta property="og:description" content="Two days of talks on sanctions, AML and data protection.">'
        )
        result = parser.parse_html(page)
        assert result.title == "Compliance Leaders Forum Europe"
        assert result.description == "Two days of talks on sanctions, AML and data protection."

    def test_microdata(self, parser):
        page = """
        <div itemscope itemtype="https://schema.org/Event">
          <meta itemprop="startDate" content="2027-06-02T09:00">
          <div itemprop="location" itemscope itemtype="https://schema.org/Place">
            <span itemprop="name">Kap Europa</span>
          </div>
        </div>
        """
        result = parser.parse_html(page)
        assert result.start_iso == "2027-06-02"
        assert result.venue == "Kap Europa"
        date_evidence = next(e for e in result.evidence if e.field == "date")
        assert date_evidence.source == EvidenceSource.MICRODATA

    def test_generic_title_skipped(self, parser):
        page = "<h1>Home</h1><title>Data Protection Congress 2027</title>"
        assert parser.parse_html(page).title == "Data Protection Congress 2027"

    def test_speakers_only_from_speaker_sections(self, parser):
        page = """
        <p>Contact Anna Schmidt for sponsorship.</p>
        <ul class="speaker-list"><li>Thomas Weber</li><li>Chief Compliance Officer</li><li>Maria Lopez</li></ul>
        """
        result = parser.parse_html(page)
        assert [s.name for s in result.speakers] == ["Thomas Weber", "Maria Lopez"]

    def test_agenda_items(self, parser):
        page = """
        <div class="session-title">Opening keynote on enforcement trends</div>
        <p>09:30 Panel: Whistleblowing programmes in practice</p>
        """
        result = parser.parse_html(page)
        assert "Opening keynote on enforcement trends" in result.agenda
        assert any(item.startswith("09:30 Panel") for item in result.agenda)


class TestFieldFilters:
    """Tests for field filters."""

    def test_generic_title(self):
        assert is_generic_title("Events")
        assert not is_generic_title("European Compliance Summit 2027")

    def test_description(self):
        assert not is_valid_description("Welcome to our website, learn more")
        assert not is_valid_description("Too short")
        assert is_valid_description("Two days of talks on sanctions and AML.")

    @pytest.mark.parametrize("location,expected", [
        ("Berlin, Germany", True),
        ("12 Main Street, Dublin", True),
        ("12345", False),
        ("color: red; margin: 0", False),
        ("https://maps.example.com", False),
        ("ab", False),
    ])
    def test_location(self, location, expected):
        assert is_valid_location(location) is expected


class TestParseStage:
    """Tests for EventParser.parse."""

    @pytest.mark.asyncio
    async def test_success_sets_parsed(self, config, event_page):
        candidate = make_candidate(url="https://summit.de/2027", status=CandidateStatus.PRIORITIZED)
        parser = EventParser(config, FakeFetcher({candidate.url: event_page}))

        result = await parser.parse(candidate)

        assert candidate.status == CandidateStatus.PARSED
        assert candidate.parse_result is result
        assert "parsing" in candidate.metadata.stage_timings

    @pytest.mark.asyncio
    async def test_records_same_host_links(self, config):
        candidate = make_candidate(url="https://summit.de/2027", status=CandidateStatus.PRIORITIZED)
        page = (
            '<title>Legal Compliance Summit 2027</title>'
            '<a href="/speakers">Speakers</a>'
            '<a href="https://other.example/agenda">Elsewhere</a>'
            '<a href="/speakers">Speakers again</a>'
        )
        parser = EventParser(config, FakeFetcher({candidate.url: page}))

        await parser.parse(candidate)

        assert candidate.metadata.page_links == ["https://summit.de/speakers"]

    @pytest.mark.asyncio
    async def test_fetch_error_fails_candidate(self, config):
        candidate = make_candidate(url="https://gone.example", status=CandidateStatus.PRIORITIZED)
        parser = EventParser(config, FakeFetcher())

        with pytest.raises(ParsingError) as exc_info:
            await parser.parse(candidate)

        assert candidate.status == CandidateStatus.FAILED
        assert exc_info.value.stage == "parsing"
        assert exc_info.value.candidate is candidate
        assert isinstance(exc_info.value.original_error, FetchError)

    @pytest.mark.asyncio
    async def test_timeout_fails_candidate(self, config):
        class SlowFetcher:
            async def fetch(self, url, timeout_ms):
                await asyncio.sleep(1)
                return ""

        fast = config.model_copy(update={"timeouts": config.timeouts.model_copy(update={"parsing": 10})})
        candidate = make_candidate(status=CandidateStatus.PRIORITIZED)

        with pytest.raises(ParsingError, match="timeout"):
            await EventParser(fast, SlowFetcher()).parse(candidate)
        assert candidate.status == CandidateStatus.FAILED
