"""Shared helpers: dates, countries, page links and person names."""

from .country import (
    COUNTRY_CONFIG,
    CountryContext,
    country_from_location,
    get_country_context,
    tld_matches_country,
    to_iso2,
)
from .dates import NormalizedDate, is_iso_day, parse_event_date, to_iso_day
from .links import same_host_links
from .names import is_valid_person_name, speaker_name_confidence

__all__ = [
    "COUNTRY_CONFIG",
    "CountryContext",
    "country_from_location",
    "get_country_context",
    "tld_matches_country",
    "to_iso2",
    "NormalizedDate",
    "is_iso_day",
    "parse_event_date",
    "to_iso_day",
    "same_host_links",
    "is_valid_person_name",
    "speaker_name_confidence",
]
