"""Event date normalization.

Turns the free-form date strings found on event pages ("12-14 May 2026",
"May 12, 2026", "2026-05-12", "12. Mai 2026") into ISO start/end days plus a
confidence tag.
"""

import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser
from pydantic import BaseModel

from eventscout.models.enums import DateConfidence

MIN_PLAUSIBLE_YEAR = 2020
MAX_YEARS_AHEAD = 5

ISO_DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

GERMAN_MONTHS = {
    "januar": "January",
    "februar": "February",
    "märz": "March",
    "maerz": "March",
    "mai": "May",
    "juni": "June",
    "juli": "July",
    "oktober": "October",
    "dezember": "December",
}

_RANGE_SEP = r"\s*(?:-|–|—|to|bis)\s*"
_MONTH = r"([A-Za-zäÄ]{3,9})\.?"

_ISO_RANGE = re.compile(
    rf"(\d{{4}}-\d{{2}}-\d{{2}})(?:T[\d:.]+(?:Z|[+-]\d{{2}}:?\d{{2}})?)?(?:{_RANGE_SEP}(\d{{4}}-\d{{2}}-\d{{2}}))?"
)
# 12-14 May 2026 / 12. - 14. Mai 2026
_DAY_RANGE = re.compile(rf"\b(\d{{1,2}})\.?{_RANGE_SEP}(\d{{1,2}})\.?\s+{_MONTH},?\s+(\d{{4}})\b")
# May 12-14, 2026
_MONTH_DAY_RANGE = re.compile(rf"\b{_MONTH}\s+(\d{{1,2}}){_RANGE_SEP}(\d{{1,2}}),?\s+(\d{{4}})\b")


class NormalizedDate(BaseModel):
    """ISO start/end day derived from a raw date string."""

    start_iso: Optional[str] = None
    end_iso: Optional[str] = None
    confidence: Optional[DateConfidence] = None


def _translate_months(text: str) -> str:
    def swap(match: re.Match) -> str:
        return GERMAN_MONTHS.get(match.group(0).lower(), match.group(0))

    return re.sub(r"[A-Za-zäÄ]+", swap, text)


def is_plausible_year(year: int, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return MIN_PLAUSIBLE_YEAR <= year <= today.year + MAX_YEARS_AHEAD


def _month_day(month: str, day: str, year: str) -> Optional[date]:
    try:
        return date_parser.parse(f"{_translate_months(month)} {day} {year}").date()
    except (ValueError, OverflowError):
        return None


def _build(start: Optional[date], end: Optional[date], confidence: DateConfidence) -> NormalizedDate:
    if start is None or not is_plausible_year(start.year):
        return NormalizedDate()
    if end is None or end < start:
        end = start
    return NormalizedDate(
        start_iso=start.isoformat(),
        end_iso=end.isoformat(),
        confidence=confidence,
    )


def parse_event_date(raw: Optional[str]) -> NormalizedDate:
    """Normalize a raw event date string.

    Explicit ISO days and day/month/year ranges are tagged ``high``; anything
    dateutil can only recover by fuzzy matching, or without a year, is ``low``.
    Unparseable input and implausible years give an empty result.
    """
    if not raw or not raw.strip():
        return NormalizedDate()
    text = raw.strip()

    match = _ISO_RANGE.search(text)
    if match:
        try:
            start = date.fromisoformat(match.group(1))
            end = date.fromisoformat(match.group(2)) if match.group(2) else None
        except ValueError:
            return NormalizedDate()
        return _build(start, end, DateConfidence.HIGH)

    match = _DAY_RANGE.search(text)
    if match:
        first, last, month, year = match.groups()
        return _build(_month_day(month, first, year), _month_day(month, last, year), DateConfidence.HIGH)

    match = _MONTH_DAY_RANGE.search(text)
    if match:
        month, first, last, year = match.groups()
        return _build(_month_day(month, first, year), _month_day(month, last, year), DateConfidence.HIGH)

    translated = _translate_months(text)
    has_year = re.search(r"\b\d{4}\b", translated) is not None
    try:
        parsed, skipped = date_parser.parse(
            translated,
            fuzzy_with_tokens=True,
            default=datetime(date.today().year, 1, 1),
        )
    except (ValueError, OverflowError):
        return NormalizedDate()

    fuzzy = any(token.strip(" ,.") for token in skipped)
    confidence = DateConfidence.HIGH if has_year and not fuzzy else DateConfidence.LOW
    return _build(parsed.date(), None, confidence)


def to_iso_day(raw: Optional[str]) -> Optional[str]:
    """Reduce any supported date string to ``YYYY-MM-DD``."""
    return parse_event_date(raw).start_iso


def is_iso_day(value: Optional[str]) -> bool:
    """True for a well-formed, real ``YYYY-MM-DD`` day."""
    if not value or not ISO_DAY_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def days_from_today(iso_day: str, today: Optional[date] = None) -> int:
    today = today or date.today()
    return (date.fromisoformat(iso_day) - today).days
