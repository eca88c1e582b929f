"""Curated seed-list provider."""

import json
import re
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from eventscout.providers.base import SearchItem, SearchParams, SearchResponse

logger = structlog.get_logger(__name__)


class CuratedEntry(BaseModel):
    """A hand-maintained event page."""

    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    country: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    related_urls: list[str] = Field(default_factory=list)
    date: Optional[str] = None


def _tokens(text: str) -> set[str]:
    return {t for t in re.findall(r"[a-z0-9]+", text.lower()) if len(t) > 2}


class CuratedListProvider:
    """Match the query against a fixed list of known event pages."""

    name = "curated"

    def __init__(self, entries: list[CuratedEntry]):
        self.entries = entries

    @classmethod
    def from_file(cls, path: str | Path) -> "CuratedListProvider":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls([CuratedEntry.model_validate(item) for item in raw])

    def _score(self, entry: CuratedEntry, query_tokens: set[str]) -> int:
        haystack = _tokens(" ".join([entry.title or "", entry.description or "", *entry.keywords]))
        return len(query_tokens & haystack)

    async def search(self, params: SearchParams) -> SearchResponse:
        query_tokens = _tokens(params.query)
        scored = []
        for entry in self.entries:
            if params.country and entry.country and entry.country.upper() != params.country.upper():
                continue
            score = self._score(entry, query_tokens)
            if score > 0:
                scored.append((score, entry))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        items = [
            SearchItem(
                url=entry.url,
                title=entry.title,
                description=entry.description,
                related_urls=entry.related_urls,
                extracted_date=entry.date,
                confidence=1.0,
            )
            for _, entry in scored[: params.limit]
        ]
        logger.debug("curated_search_complete", query=params.query, items=len(items))
        return SearchResponse(items=items)
