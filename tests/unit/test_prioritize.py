"""Unit tests for the prioritization stage."""

from datetime import date, timedelta

import pytest

from eventscout.models import CandidateMetadata, CandidateStatus, ScoringMethod
from eventscout.pipeline.stages import EventPrioritizer
from eventscout.pipeline.stages.prioritize import describe_window, weighted_overall

from conftest import FakeLLM, make_candidate, score_json


def soon(days: int = 60) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def event_candidates(n: int):
    return [make_candidate(url=f"https://example.com/event-{i}") for i in range(n)]


class TestWeightedOverall:
    """Tests for weight vector selection."""

    def test_without_country(self):
        scores = dict(is_event=1.0, has_agenda=0.0, has_speakers=0.0, is_recent=0.0, is_relevant=0.0)
        assert weighted_overall(scores) == pytest.approx(0.30)

    def test_with_country(self):
        scores = dict(is_event=1.0, has_agenda=0.0, has_speakers=0.0, is_recent=0.0, is_relevant=0.0,
                      is_country_relevant=1.0)
        assert weighted_overall(scores) == pytest.approx(0.40)


class TestThresholds:
    """Tests for threshold handling and degraded mode."""

    @pytest.mark.asyncio
    async def test_score_equal_to_threshold_is_accepted(self, config):
        candidates = event_candidates(4)
        prioritizer = EventPrioritizer(config, FakeLLM(score_json(0.5, normalized_date=soon())))

        prioritized = await prioritizer.prioritize(candidates)

        assert all(c.priority_score == 0.5 for c in candidates)
        assert prioritized == candidates
        assert all(c.status == CandidateStatus.PRIORITIZED for c in candidates)

    @pytest.mark.asyncio
    async def test_below_threshold_is_rejected(self, config):
        candidates = event_candidates(4)
        prioritizer = EventPrioritizer(config, FakeLLM(score_json(0.4, normalized_date=soon())))

        prioritized = await prioritizer.prioritize(candidates)

        assert prioritized == []
        assert all(c.status == CandidateStatus.REJECTED for c in candidates)

    @pytest.mark.asyncio
    async def test_degraded_mode_applies_to_one_call_only(self, config):
        prioritizer = EventPrioritizer(config, FakeLLM(score_json(0.4, normalized_date=soon())))

        small_pool = event_candidates(2)
        assert len(await prioritizer.prioritize(small_pool)) == 2

        large_pool = event_candidates(4)
        assert await prioritizer.prioritize(large_pool) == []
        assert config.thresholds.prioritization == 0.5

    def test_effective_threshold(self, config):
        prioritizer = EventPrioritizer(config)
        assert prioritizer.effective_threshold(3) == 0.3
        assert prioritizer.effective_threshold(4) == 0.5
        assert prioritizer.effective_threshold(1, override=0.9) == 0.9

    @pytest.mark.asyncio
    async def test_explicit_threshold_skips_degraded_mode(self, config):
        candidates = event_candidates(1)
        prioritizer = EventPrioritizer(config, FakeLLM(score_json(0.4, normalized_date=soon())))

        assert await prioritizer.prioritize(candidates, threshold=0.5) == []


class TestDescribeWindow:
    """Tests for the prompt's date window text."""

    @pytest.mark.parametrize("date_from,date_to,expected", [
        (date(2027, 1, 1), date(2027, 6, 30), "2027-01-01 to 2027-06-30"),
        (date(2027, 1, 1), None, "from 2027-01-01"),
        (None, date(2027, 6, 30), "until 2027-06-30"),
        (None, None, "any"),
    ])
    def test_describe(self, date_from, date_to, expected):
        assert describe_window(date_from, date_to) == expected


class TestScoringPaths:
    """Tests for model and heuristic scoring."""

    @pytest.mark.asyncio
    async def test_fallback_heuristic(self, config):
        candidate = make_candidate(url="https://example.com/legal-compliance-summit")
        score = await EventPrioritizer(config).score_candidate(candidate)

        assert score.method == ScoringMethod.FALLBACK
        assert score.is_event == 0.8
        assert score.is_relevant == 0.8
        assert score.is_recent == 0.3
        assert score.is_country_relevant is None
        assert score.overall == 0.5

    @pytest.mark.asyncio
    async def test_url_path_uses_model(self, config):
        llm = FakeLLM(score_json(0.9, normalized_date=soon()))
        score = await EventPrioritizer(config, llm).score_candidate(make_candidate(url="https://example.com/summit"))

        assert score.method == ScoringMethod.LLM_URL
        assert "https://example.com/summit" in llm.prompts[0]
        assert score.overall == 0.9

    @pytest.mark.asyncio
    async def test_plain_url_skips_model(self, config):
        llm = FakeLLM(score_json(0.9))
        score = await EventPrioritizer(config, llm).score_candidate(make_candidate(url="https://example.com/about-us"))

        assert score.method == ScoringMethod.FALLBACK
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_content_path(self, config):
        llm = FakeLLM(f"```json\n{score_json(0.9, normalized_date=soon())}\n```")
        candidate = make_candidate(
            url="https://example.com/page",
            metadata=CandidateMetadata(original_query="summit", scraped_content="Agenda and speakers for 2027"),
        )

        score = await EventPrioritizer(config, llm).score_candidate(candidate)

        assert score.method == ScoringMethod.LLM_CONTENT
        assert "Agenda and speakers for 2027" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_content_prompt_carries_requested_window(self, config):
        llm = FakeLLM(score_json(0.9, normalized_date=soon()))
        candidate = make_candidate(
            url="https://example.com/page",
            metadata=CandidateMetadata(original_query="summit", scraped_content="Agenda and speakers"),
        )

        await EventPrioritizer(config, llm).prioritize(
            [candidate], date_from=date(2027, 1, 1), date_to=date(2027, 12, 31)
        )

        assert "DATE WINDOW: 2027-01-01 to 2027-12-31" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_url_year_counts_as_recent(self, config):
        next_year = date.today().year + 1
        dated = make_candidate(url=f"https://example.com/legal-compliance-summit-{next_year}")
        undated = make_candidate(url="https://example.com/legal-compliance-summit")

        dated_score = await EventPrioritizer(config).score_candidate(dated)
        undated_score = await EventPrioritizer(config).score_candidate(undated)

        assert dated_score.normalized_date is None
        assert dated_score.is_recent == 0.8
        assert dated_score.overall > undated_score.overall

    @pytest.mark.asyncio
    @pytest.mark.parametrize("llm", [
        FakeLLM(exc=RuntimeError("model down")),
        FakeLLM("I cannot help with that"),
        FakeLLM('{"is_event": 5}'),
    ])
    async def test_model_problems_fall_back(self, config, llm):
        score = await EventPrioritizer(config, llm).score_candidate(make_candidate(url="https://example.com/summit"))
        assert score.method == ScoringMethod.FALLBACK

    @pytest.mark.asyncio
    async def test_no_date_caps_recency(self, config):
        llm = FakeLLM(score_json(1.0))
        score = await EventPrioritizer(config, llm).score_candidate(make_candidate(url="https://example.com/summit"))

        assert score.is_recent == 0.3
        assert score.normalized_date is None

    @pytest.mark.asyncio
    async def test_out_of_window_date_zeroes_score(self, config):
        llm = FakeLLM(score_json(1.0, normalized_date="2021-05-01"))
        score = await EventPrioritizer(config, llm).score_candidate(make_candidate(url="https://example.com/summit"))

        assert score.overall == 0.0

    @pytest.mark.asyncio
    async def test_provider_date_used_when_model_has_none(self, config):
        candidate = make_candidate(
            url="https://example.com/summit",
            metadata=CandidateMetadata(extracted_date=soon(30)),
        )
        score = await EventPrioritizer(config, FakeLLM(score_json(1.0))).score_candidate(candidate)

        assert score.normalized_date == soon(30)
        assert score.is_recent == 1.0


class TestCountrySignals:
    """Tests for country relevance and locale bonuses."""

    @pytest.mark.asyncio
    async def test_country_relevance_from_tld(self, config):
        score = await EventPrioritizer(config).score_candidate(make_candidate(url="https://kongress.de/event"), "DE")
        assert score.is_country_relevant == 0.8

    @pytest.mark.asyncio
    async def test_country_relevance_from_city(self, config):
        candidate = make_candidate(url="https://example.com/berlin-summit")
        score = await EventPrioritizer(config).score_candidate(candidate, "DE")
        assert score.is_country_relevant == 0.7

    @pytest.mark.asyncio
    async def test_country_relevance_default(self, config):
        score = await EventPrioritizer(config).score_candidate(make_candidate(url="https://example.com/x"), "DE")
        assert score.is_country_relevant == 0.3

    @pytest.mark.asyncio
    async def test_german_cue_and_city_bonuses(self, config):
        llm = FakeLLM(score_json(0.5, normalized_date=soon(), is_country_relevant=0.5))
        candidate = make_candidate(
            url="https://example.com/konferenz",
            metadata=CandidateMetadata(title="Compliance Konferenz Berlin"),
        )

        score = await EventPrioritizer(config, llm).score_candidate(candidate, "DE")

        assert score.overall == 0.6

    @pytest.mark.asyncio
    async def test_german_cues_ignored_for_other_locales(self, config):
        llm = FakeLLM(score_json(0.5, normalized_date=soon(), is_country_relevant=0.5))
        candidate = make_candidate(
            url="https://example.com/konferenz",
            metadata=CandidateMetadata(title="Compliance Konferenz"),
        )

        score = await EventPrioritizer(config, llm).score_candidate(candidate, "FR")

        assert score.overall == 0.5


class TestPrioritizeStage:
    """Tests for the stage entry point."""

    @pytest.mark.asyncio
    async def test_score_recorded_on_candidate(self, config):
        candidates = event_candidates(4)
        await EventPrioritizer(config, FakeLLM(score_json(0.8, normalized_date=soon()))).prioritize(candidates)

        stored = candidates[0].metadata.extra["prioritization"]
        assert stored["overall"] == 0.8
        assert stored["method"] == "llm_url"
        assert "prioritization" in candidates[0].metadata.stage_timings

    @pytest.mark.asyncio
    async def test_scoring_errors_isolated(self, config, monkeypatch):
        candidates = event_candidates(4)
        prioritizer = EventPrioritizer(config, FakeLLM(score_json(0.8, normalized_date=soon())))
        original = prioritizer.score_candidate

        async def flaky(candidate, target_country=None, **window):
            if candidate is candidates[1]:
                raise RuntimeError("unexpected")
            return await original(candidate, target_country, **window)

        monkeypatch.setattr(prioritizer, "score_candidate", flaky)
        prioritized = await prioritizer.prioritize(candidates)

        assert candidates[1].status == CandidateStatus.FAILED
        assert prioritized == [candidates[0], candidates[2], candidates[3]]
