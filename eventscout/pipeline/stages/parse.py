"""Stage 3: Deterministic page parsing.

Each field has an ordered list of rules (microdata, then meta tags, then
scoped regular expressions). The first hit that passes the field's filter
wins, and its literal match becomes the evidence quote.
"""

import asyncio
import html as html_lib
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from eventscout.config.settings import PipelineConfig
from eventscout.errors import ParsingError
from eventscout.models.candidate import Candidate, Evidence, ParseResult, Speaker
from eventscout.models.enums import CandidateStatus, EvidenceSource, ParseMethod
from eventscout.pipeline.telemetry import elapsed_ms
from eventscout.providers.base import FetchTimeoutError, PageFetcher
from eventscout.utils.dates import parse_event_date
from eventscout.utils.links import same_host_links
from eventscout.utils.names import is_valid_person_name

logger = structlog.get_logger(__name__)

MAX_SPEAKERS = 10
MAX_AGENDA_ITEMS = 20

FIELD_WEIGHTS = {
    "title": 0.30,
    "description": 0.20,
    "date": 0.20,
    "location": 0.15,
    "venue": 0.10,
}
SPEAKERS_WEIGHT = 0.05

STRING_EVIDENCE_CONFIDENCE = 0.8
LIST_EVIDENCE_CONFIDENCE = 0.7

GENERIC_TITLES = ("home", "about", "contact", "news", "blog", "events", "conference", "summit")
GENERIC_DESCRIPTIONS = ("welcome to", "this is the", "learn more", "read more", "click here")
MARKUP_FRAGMENTS = (
    "{", "}", ";", "var(", "--wp-", "color:", "margin:", "padding:", "font-",
    "<", ">", "class=",
)
MONTHS = r"(?:January|February|March|April|May|June|July|August|September|October|November|December)"
VENUE_WORDS = r"(?:Center|Centre|Hall|Theater|Theatre|Convention|Hotel|Resort|Arena|Stadium|Auditorium|Messe)"


@dataclass
class Rule:
    """One extraction pattern. The first non-empty group is the value."""

    pattern: re.Pattern
    source: EvidenceSource
    selector: str


@dataclass
class Hit:
    value: str
    source: EvidenceSource
    quoted_text: str
    selector: str


def _meta(attr: str, value: str) -> re.Pattern:
    """Match ``<meta attr="value" content="...">`` in either attribute order."""
    return re.compile(
        rf'<meta[^>]*?(?:{attr}="{value}"[^>]*?content="([^"]*)"|content="([^"]*)"[^>]*?{attr}="{value}")',
        re.IGNORECASE,
    )


def _microdata(prop: str) -> re.Pattern:
    return re.compile(
        rf'<[^>]*?(?:itemprop="{prop}"[^>]*?content="([^"]*)"|content="([^"]*)"[^>]*?itemprop="{prop}")',
        re.IGNORECASE,
    )


def _scoped(keywords: str, min_len: int = 3, max_len: int = 200) -> re.Pattern:
    """Text directly inside an element whose class or id mentions ``keywords``."""
    return re.compile(
        rf'<(?:div|span|p|li|td|address|h[2-6]|strong|time)[^>]*?(?:class|id)="[^"]*?(?:{keywords})[^"]*"[^>]*>'
        rf"\s*([^<]{{{min_len},{max_len}}}?)\s*<",
        re.IGNORECASE,
    )


TITLE_RULES = [
    Rule(_microdata("name"), EvidenceSource.MICRODATA, "itemprop=name"),
    Rule(_meta("property", "og:title"), EvidenceSource.HTML, "meta[og:title]"),
    Rule(_meta("name", "twitter:title"), EvidenceSource.HTML, "meta[twitter:title]"),
    Rule(re.compile(r'<h1[^>]*class="[^"]*title[^"]*"[^>]*>([^<]+)</h1>', re.IGNORECASE), EvidenceSource.HTML, "h1.title"),
    Rule(re.compile(r"<h1[^>]*>([^<]+)</h1>", re.IGNORECASE), EvidenceSource.HTML, "h1"),
    Rule(re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE), EvidenceSource.HTML, "title"),
]

DESCRIPTION_RULES = [
    Rule(_microdata("description"), EvidenceSource.MICRODATA, "itemprop=description"),
    Rule(_meta("property", "og:description"), EvidenceSource.HTML, "meta[og:description]"),
    Rule(_meta("name", "description"), EvidenceSource.HTML, "meta[description]"),
    Rule(_meta("name", "twitter:description"), EvidenceSource.HTML, "meta[twitter:description]"),
    Rule(re.compile(r"<p[^>]*>([^<]{50,500})</p>", re.IGNORECASE), EvidenceSource.HTML, "p"),
]

DATE_RULES = [
    Rule(_microdata("startDate"), EvidenceSource.MICRODATA, "itemprop=startDate"),
    Rule(_meta("property", "event:start_time"), EvidenceSource.HTML, "meta[event:start_time]"),
    Rule(_scoped("date|when|datum", 6, 80), EvidenceSource.HTML, ".date"),
    Rule(re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"), EvidenceSource.REGEX, "iso-date"),
    Rule(
        re.compile(rf"\b(\d{{1,2}}\.?\s*(?:[-–]\s*\d{{1,2}}\.?\s*)?{MONTHS},?\s+\d{{4}})\b", re.IGNORECASE),
        EvidenceSource.REGEX,
        "day-month-year",
    ),
    Rule(
        re.compile(rf"\b({MONTHS}\s+\d{{1,2}}(?:\s*[-–]\s*\d{{1,2}})?,?\s+\d{{4}})\b", re.IGNORECASE),
        EvidenceSource.REGEX,
        "month-day-year",
    ),
    Rule(re.compile(r"\b(\d{1,2}[/.]\d{1,2}[/.]\d{4})\b"), EvidenceSource.REGEX, "numeric-date"),
]

LOCATION_RULES = [
    Rule(_microdata("location"), EvidenceSource.MICRODATA, "itemprop=location"),
    Rule(_microdata("address"), EvidenceSource.MICRODATA, "itemprop=address"),
    Rule(_meta("property", "event:location"), EvidenceSource.HTML, "meta[event:location]"),
    Rule(_scoped("location|where|city|ort"), EvidenceSource.HTML, ".location"),
    Rule(
        re.compile(r"(\d+\s+[A-Za-z\s]+(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln|Way|Place|Pl)\b[^<]{0,60})"),
        EvidenceSource.REGEX,
        "street-address",
    ),
]

VENUE_RULES = [
    Rule(
        re.compile(
            r'itemtype="https?://schema\.org/Place"[^>]*>[\s\S]{0,300}?itemprop="name"[^>]*?(?:content="([^"]+)"|>([^<]+)<)',
            re.IGNORECASE,
        ),
        EvidenceSource.MICRODATA,
        "Place.name",
    ),
    Rule(_scoped("venue"), EvidenceSource.HTML, ".venue"),
    Rule(
        re.compile(rf"\b([A-Z][\w'&-]+(?:\s+[A-Z][\w'&-]+)*\s+{VENUE_WORDS})\b"),
        EvidenceSource.REGEX,
        "venue-name",
    ),
]

SPEAKER_MICRODATA = re.compile(
    r'itemprop="(?:performer|speaker)"[^>]*>[\s\S]{0,300}?itemprop="name"[^>]*?(?:content="([^"]+)"|>([^<]+)<)',
    re.IGNORECASE,
)
SPEAKER_SECTION = re.compile(
    r'<(div|section|ul|ol|li|article|p|span|h[2-6])[^>]*?(?:class|id)="[^"]*?(?:speaker|presenter|keynote|referent)[^"]*"[^>]*>([\s\S]{0,4000}?)</\1>',
    re.IGNORECASE,
)
PERSON_NAME = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z]\.)?\s+[A-Z][a-z]+)\b")

AGENDA_SECTION = re.compile(
    r'<(?:div|li|h[2-6]|p|span|td)[^>]*?(?:class|id)="[^"]*?(?:session|agenda|track|workshop|programme|program)[^"]*"[^>]*>\s*([^<]{10,100}?)\s*<',
    re.IGNORECASE,
)
AGENDA_TIMED = re.compile(r"(\d{1,2}:\d{2}[^<]{10,100})")


def _clean(value: str) -> str:
    return re.sub(r"\s+", " ", html_lib.unescape(value)).strip()


def _first_group(match: re.Match) -> Optional[str]:
    return next((g for g in match.groups() if g), None)


def _first_hit(page: str, rules: list[Rule], accept: Callable[[str], bool]) -> Optional[Hit]:
    for rule in rules:
        for match in rule.pattern.finditer(page):
            raw = _first_group(match)
            if not raw:
                continue
            value = _clean(raw)
            if value and accept(value):
                return Hit(value=value, source=rule.source, quoted_text=match.group(0), selector=rule.selector)
    return None


# =============================================================================
# Field filters
# =============================================================================

def is_generic_title(title: str) -> bool:
    lowered = title.lower()
    return len(title) < 20 and any(generic in lowered for generic in GENERIC_TITLES)


def is_valid_description(description: str) -> bool:
    lowered = description.lower()
    return len(description) > 20 and not any(generic in lowered for generic in GENERIC_DESCRIPTIONS)


def is_valid_date(value: str) -> bool:
    return parse_event_date(value).start_iso is not None


def is_valid_location(location: str) -> bool:
    if len(location) < 3 or len(location) > 200:
        return False
    if not re.search(r"[A-Za-z]", location):
        return False
    if "http" in location or "www." in location:
        return False
    if any(fragment in location for fragment in MARKUP_FRAGMENTS):
        return False
    return re.fullmatch(r"[\w\s,.'()/-]+", location) is not None and len(location.strip()) > 3


def is_valid_venue(venue: str) -> bool:
    return len(venue) > 3 and re.search(r"[A-Za-z]", venue) is not None and "http" not in venue and "www." not in venue


def is_valid_agenda_item(item: str) -> bool:
    return 10 <= len(item) <= 100 and re.search(r"[A-Za-z]", item) is not None and "http" not in item


# =============================================================================
# Parser
# =============================================================================

class EventParser:
    """Fetch a candidate page and extract event fields with pattern rules."""

    def __init__(self, config: PipelineConfig, fetcher: PageFetcher):
        self.config = config
        self.fetcher = fetcher

    async def parse(self, candidate: Candidate) -> ParseResult:
        """Parse ``candidate`` and attach the result.

        Raises:
            ParsingError: On fetch timeout, transport error or non-2xx response.
                The candidate is marked failed first.
        """
        start = time.perf_counter()
        timeout_ms = self.config.timeouts.parsing
        logger.info("parse_start", url=candidate.url)

        try:
            try:
                page = await asyncio.wait_for(
                    self.fetcher.fetch(candidate.url, timeout_ms),
                    timeout=timeout_ms / 1000,
                )
            except asyncio.TimeoutError as e:
                raise FetchTimeoutError(f"Request timeout after {timeout_ms}ms", url=candidate.url) from e
        except Exception as e:
            candidate.advance(CandidateStatus.FAILED)
            candidate.metadata.stage_timings["parsing"] = elapsed_ms(start)
            logger.error("parse_failed", url=candidate.url, error=str(e), duration_ms=elapsed_ms(start))
            raise ParsingError(f"Parsing failed: {e}", candidate=candidate, original_error=e) from e

        result = self.parse_html(page)
        candidate.parse_result = result
        candidate.metadata.page_links = same_host_links(page, candidate.url)
        candidate.advance(CandidateStatus.PARSED)
        candidate.metadata.stage_timings["parsing"] = elapsed_ms(start)
        candidate.metadata.processing_time_ms = elapsed_ms(start)

        logger.info(
            "parse_complete",
            url=candidate.url,
            confidence=result.confidence,
            fields=result.populated_core_fields(),
            speakers=len(result.speakers),
            duration_ms=elapsed_ms(start),
        )
        return result

    def parse_html(self, page: str) -> ParseResult:
        """Apply the field rules to raw markup. Pure, no I/O."""
        hits: dict[str, Hit] = {}

        title = _first_hit(page, TITLE_RULES, lambda v: not is_generic_title(v))
        description = _first_hit(page, DESCRIPTION_RULES, is_valid_description)
        date_hit = _first_hit(page, DATE_RULES, is_valid_date)
        location = _first_hit(page, LOCATION_RULES, is_valid_location)
        venue = _first_hit(page, VENUE_RULES, is_valid_venue)
        for name, hit in (("title", title), ("description", description), ("date", date_hit),
                          ("location", location), ("venue", venue)):
            if hit is not None:
                hits[name] = hit

        speakers, speaker_quotes, speaker_source = self._extract_speakers(page)
        agenda, agenda_quotes = self._extract_agenda(page)

        normalized = parse_event_date(date_hit.value) if date_hit else None
        result = ParseResult(
            title=title.value if title else None,
            description=description.value if description else None,
            date=date_hit.value if date_hit else None,
            start_iso=normalized.start_iso if normalized else None,
            end_iso=normalized.end_iso if normalized else None,
            date_confidence=normalized.confidence if normalized else None,
            location=location.value if location else None,
            venue=venue.value if venue else None,
            speakers=speakers,
            agenda=agenda,
            parse_method=ParseMethod.DETERMINISTIC,
        )
        result.confidence = self.calculate_confidence(result)
        result.evidence = self._build_evidence(hits, speakers, speaker_quotes, speaker_source, agenda, agenda_quotes)
        return result

    def _extract_speakers(self, page: str) -> tuple[list[Speaker], list[str], EvidenceSource]:
        names: list[str] = []
        quotes: list[str] = []
        source = EvidenceSource.HTML

        for match in SPEAKER_MICRODATA.finditer(page):
            name = _clean(_first_group(match) or "")
            if is_valid_person_name(name) and name not in names:
                names.append(name)
                quotes.append(match.group(0))
                source = EvidenceSource.MICRODATA

        for section in SPEAKER_SECTION.finditer(page):
            text = re.sub(r"<[^>]+>", "\n", section.group(2))
            for segment in text.split("\n"):
                segment = _clean(segment)
                for match in PERSON_NAME.finditer(segment):
                    name = match.group(1)
                    if is_valid_person_name(name) and name not in names:
                        names.append(name)
                        quotes.append(segment)

        names = names[:MAX_SPEAKERS]
        return [Speaker(name=name) for name in names], quotes[:MAX_SPEAKERS], source

    def _extract_agenda(self, page: str) -> tuple[list[str], list[str]]:
        items: list[str] = []
        quotes: list[str] = []
        for pattern in (AGENDA_SECTION, AGENDA_TIMED):
            for match in pattern.finditer(page):
                item = _clean(match.group(1))
                if is_valid_agenda_item(item) and item not in items:
                    items.append(item)
                    quotes.append(match.group(0))
        return items[:MAX_AGENDA_ITEMS], quotes[:MAX_AGENDA_ITEMS]

    @staticmethod
    def calculate_confidence(result: ParseResult) -> float:
        populated = set(result.populated_core_fields())
        confidence = sum(weight for name, weight in FIELD_WEIGHTS.items() if name in populated)
        if result.speakers:
            confidence += SPEAKERS_WEIGHT
        return round(min(confidence, 1.0), 2)

    @staticmethod
    def _build_evidence(
        hits: dict[str, Hit],
        speakers: list[Speaker],
        speaker_quotes: list[str],
        speaker_source: EvidenceSource,
        agenda: list[str],
        agenda_quotes: list[str],
    ) -> list[Evidence]:
        evidence = [
            Evidence(
                field=name,
                value=hit.value,
                source=hit.source,
                quoted_text=hit.quoted_text,
                confidence=STRING_EVIDENCE_CONFIDENCE,
                selector=hit.selector,
            )
            for name, hit in hits.items()
        ]
        if speakers:
            evidence.append(Evidence(
                field="speakers",
                value=", ".join(s.name for s in speakers),
                source=speaker_source,
                quoted_text=" | ".join(speaker_quotes),
                confidence=LIST_EVIDENCE_CONFIDENCE,
            ))
        if agenda:
            evidence.append(Evidence(
                field="agenda",
                value=", ".join(agenda),
                source=EvidenceSource.HTML,
                quoted_text=" | ".join(agenda_quotes),
                confidence=LIST_EVIDENCE_CONFIDENCE,
            ))
        return evidence
