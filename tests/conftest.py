"""Pytest configuration and fixtures."""

import asyncio
import json
from typing import Callable, Optional, Union

import pytest

from eventscout.config.settings import BatchDelays, PipelineConfig
from eventscout.models import Candidate, CandidateStatus, DiscoverySource, ParseResult
from eventscout.providers.base import FetchError, SearchItem, SearchParams, SearchResponse


class FakeProvider:
    """In-memory discovery provider."""

    def __init__(
        self,
        name: str,
        items: Optional[list[SearchItem]] = None,
        exc: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.name = name
        self.items = items or []
        self.exc = exc
        self.delay = delay
        self.calls: list[SearchParams] = []

    async def search(self, params: SearchParams) -> SearchResponse:
        self.calls.append(params)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return SearchResponse(items=list(self.items))


class FakeLLM:
    """Language model returning canned responses.

    ``responses`` is either a single string, a list consumed in order (the last
    entry repeats), or a callable taking the prompt.
    """

    def __init__(
        self,
        responses: Union[str, list[str], Callable[[str], str], None] = None,
        exc: Optional[Exception] = None,
    ):
        self.responses = responses
        self.exc = exc
        self.prompts: list[str] = []

    async def generate_content(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.exc is not None:
            raise self.exc
        if callable(self.responses):
            return self.responses(prompt)
        if isinstance(self.responses, list):
            index = min(len(self.prompts) - 1, len(self.responses) - 1)
            return self.responses[index]
        return self.responses or ""


class FakeFetcher:
    """Page fetcher serving markup from a dict. Unknown URLs give a 404."""

    def __init__(self, pages: Optional[dict[str, str]] = None, errors: Optional[dict[str, Exception]] = None):
        self.pages = pages or {}
        self.errors = errors or {}
        self.fetched: list[str] = []

    async def fetch(self, url: str, timeout_ms: int) -> str:
        self.fetched.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url not in self.pages:
            raise FetchError("HTTP 404: Not Found", url=url, status_code=404)
        return self.pages[url]


def score_json(value: float = 0.5, normalized_date: Optional[str] = None, **overrides) -> str:
    """A prioritization model response with every sub-score set to ``value``."""
    payload = {
        "is_event": value,
        "has_agenda": value,
        "has_speakers": value,
        "is_recent": value,
        "is_relevant": value,
        "normalized_date": normalized_date,
    }
    payload.update(overrides)
    return json.dumps(payload)


def make_candidate(
    url: str = "https://example.com/event",
    source: DiscoverySource = DiscoverySource.CSE,
    status: CandidateStatus = CandidateStatus.DISCOVERED,
    **kwargs,
) -> Candidate:
    return Candidate(id=f"{source.value}_{abs(hash(url)) % 10**12:012d}", url=url, source=source, status=status, **kwargs)


EVENT_PAGE = """
<html>
<head>
  <title>Legal Compliance Summit 2027 | Berlin</title>
  <meta name="description" content="The annual gathering for compliance officers, general counsel and regulators across Europe.">
</head>
<body>
  <h1>Legal Compliance Summit 2027</h1>
  <div class="event-date">12-14 March 2027</div>
  <div class="location">Berlin, Germany</div>
  <div class="venue">Estrel Congress Center</div>
  <div class="speakers"><p>Anna Schmidt</p><p>Thomas Weber</p></div>
</body>
</html>
"""

TITLE_ONLY_PAGE = "<html><head><title>Annual Legal Compliance Summit 2027</title></head><body></body></html>"


@pytest.fixture
def config() -> PipelineConfig:
    """Default pipeline config without inter-batch delays."""
    return PipelineConfig(
        batch_delays=BatchDelays(prioritization=0, parsing=0, extraction=0, publishing=0),
    )


@pytest.fixture
def event_page() -> str:
    return EVENT_PAGE


@pytest.fixture
def title_only_page() -> str:
    return TITLE_ONLY_PAGE


@pytest.fixture
def parse_result() -> ParseResult:
    """A complete deterministic parse result."""
    return ParseResult(
        title="Legal Compliance Summit 2027",
        description="The annual gathering for compliance officers and general counsel.",
        date="12-14 March 2027",
        start_iso="2027-03-12",
        end_iso="2027-03-14",
        location="Berlin, Germany",
        venue="Estrel Congress Center",
        confidence=0.95,
    )
