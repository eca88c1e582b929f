"""Country context tables and location → country lookups."""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CountryContext(BaseModel):
    """Search hints for one target country."""

    model_config = ConfigDict(frozen=True)

    iso2: str
    locale: str
    tld: str
    country_names: list[str]
    cities: list[str]
    location_tokens: list[str]


COUNTRY_CONFIG: dict[str, CountryContext] = {
    "DE": CountryContext(
        iso2="DE",
        locale="de",
        tld=".de",
        country_names=["Germany", "Deutschland", "DE", "Bundesrepublik"],
        cities=["Berlin", "München", "Munich", "Frankfurt", "Hamburg", "Köln", "Cologne",
                "Stuttgart", "Düsseldorf", "Leipzig", "Hannover", "Nürnberg"],
        location_tokens=["Germany", "Deutschland", "German", "Deutsch", "Berlin", "Frankfurt",
                         "Hamburg", "München", "Munich"],
    ),
    "FR": CountryContext(
        iso2="FR",
        locale="en",
        tld=".fr",
        country_names=["France", "FR", "Republique francaise", "Frankreich"],
        cities=["Paris", "Lyon", "Marseille", "Lille", "Toulouse", "Bordeaux", "Nantes",
                "Strasbourg", "Nice", "Rennes"],
        location_tokens=["France", "Français", "French", "Paris", "Lyon", "Marseille"],
    ),
    "NL": CountryContext(
        iso2="NL",
        locale="en",
        tld=".nl",
        country_names=["Netherlands", "Nederland", "NL", "Holland"],
        cities=["Amsterdam", "Rotterdam", "Utrecht", "Eindhoven", "Groningen", "The Hague"],
        location_tokens=["Netherlands", "Nederland", "Dutch", "Holland", "Amsterdam", "Rotterdam"],
    ),
    "GB": CountryContext(
        iso2="GB",
        locale="en",
        tld=".uk",
        country_names=["United Kingdom", "UK", "Great Britain", "GB"],
        cities=["London", "Manchester", "Birmingham", "Glasgow", "Edinburgh", "Liverpool",
                "Leeds", "Bristol", "Cardiff", "Belfast"],
        location_tokens=["United Kingdom", "Britain", "British", "England", "London", "Scotland"],
    ),
    "ES": CountryContext(
        iso2="ES",
        locale="en",
        tld=".es",
        country_names=["Spain", "España", "Espana", "ES"],
        cities=["Madrid", "Barcelona", "Valencia", "Sevilla", "Bilbao", "Zaragoza", "Malaga"],
        location_tokens=["Spain", "España", "Spanish", "Madrid", "Barcelona"],
    ),
    "IT": CountryContext(
        iso2="IT",
        locale="en",
        tld=".it",
        country_names=["Italy", "Italia", "IT"],
        cities=["Roma", "Rome", "Milano", "Milan", "Torino", "Turin", "Napoli", "Bologna",
                "Firenze", "Florence"],
        location_tokens=["Italy", "Italia", "Italian", "Rome", "Milan", "Milano"],
    ),
}

COUNTRY_ALIASES = {
    "GERMANY": "DE",
    "DEUTSCHLAND": "DE",
    "FRANCE": "FR",
    "FRANKREICH": "FR",
    "NETHERLANDS": "NL",
    "NIEDERLANDE": "NL",
    "HOLLAND": "NL",
    "UK": "GB",
    "UNITEDKINGDOM": "GB",
    "GREATBRITAIN": "GB",
    "ENGLAND": "GB",
    "SPAIN": "ES",
    "ESPANA": "ES",
    "ITALY": "IT",
    "ITALIA": "IT",
}

# Location keyword → ISO2. Two-letter codes only match as whole words.
LOCATION_COUNTRY_PATTERNS: dict[str, list[str]] = {
    "DE": ["germany", "deutschland", "de", "berlin", "munich", "münchen", "frankfurt",
           "hamburg", "cologne", "köln", "stuttgart", "düsseldorf", "leipzig"],
    "FR": ["france", "fr", "paris", "lyon", "marseille", "toulouse", "nice", "nantes"],
    "GB": ["united kingdom", "uk", "england", "scotland", "wales", "london", "manchester",
           "birmingham", "glasgow", "edinburgh"],
    "ES": ["spain", "españa", "es", "madrid", "barcelona", "valencia", "seville", "bilbao"],
    "IT": ["italy", "italia", "it", "rome", "milan", "naples", "turin", "florence", "venice"],
    "NL": ["netherlands", "nederland", "nl", "amsterdam", "rotterdam", "the hague", "utrecht"],
    "US": ["united states", "usa", "us", "new york", "los angeles", "chicago", "houston",
           "san francisco", "washington dc"],
    "VN": ["vietnam", "viet nam", "vn", "ho chi minh city", "hanoi", "da nang"],
    "AT": ["austria", "österreich", "at", "vienna", "wien", "salzburg", "innsbruck", "graz"],
    "CH": ["switzerland", "schweiz", "ch", "zurich", "zürich", "geneva", "basel", "bern",
           "lausanne"],
    "BE": ["belgium", "be", "brussels", "antwerp", "ghent", "bruges"],
    "DK": ["denmark", "dk", "copenhagen", "aarhus"],
    "SE": ["sweden", "se", "stockholm", "gothenburg", "malmo"],
    "NO": ["norway", "no", "oslo", "bergen"],
    "FI": ["finland", "fi", "helsinki", "tampere"],
    "PL": ["poland", "pl", "warsaw", "krakow", "gdansk", "wroclaw"],
    "CZ": ["czech republic", "czechia", "cz", "prague", "brno"],
    "HU": ["hungary", "hu", "budapest"],
    "IE": ["ireland", "ie", "dublin", "cork", "galway"],
    "PT": ["portugal", "pt", "lisbon", "porto"],
}

EUROPEAN_COUNTRIES = frozenset({
    "DE", "FR", "GB", "ES", "IT", "NL", "AT", "CH", "BE", "DK", "SE", "NO", "FI",
    "PL", "CZ", "HU", "IE", "PT",
})


def to_iso2(raw: Optional[str]) -> Optional[str]:
    """Normalize a country name, alias or code to ISO2 (``EU`` passes through)."""
    if not raw or not raw.strip():
        return None
    upper = raw.strip().upper()
    if upper == "EU":
        return "EU"
    if len(upper) == 2 and upper in COUNTRY_CONFIG:
        return upper
    key = re.sub(r"[^A-Z]", "", upper)
    if key in COUNTRY_CONFIG:
        return key
    if key in COUNTRY_ALIASES:
        return COUNTRY_ALIASES[key]
    # unconfigured two-letter codes (VN, US, ...) are kept as given
    return upper if len(upper) == 2 else None


def get_country_context(raw: Optional[str]) -> Optional[CountryContext]:
    iso2 = to_iso2(raw)
    if not iso2:
        return None
    return COUNTRY_CONFIG.get(iso2)


def _mentions(text: str, pattern: str) -> bool:
    if len(pattern) <= 3:
        return re.search(rf"\b{re.escape(pattern)}\b", text) is not None
    return pattern in text


def country_from_location(location: Optional[str]) -> Optional[str]:
    """Map a free-text location to an ISO2 code using the lookup table."""
    if not location:
        return None
    text = location.lower()
    # Long names first so "ho chi minh city" is not read as some short code
    for code, patterns in LOCATION_COUNTRY_PATTERNS.items():
        if any(_mentions(text, p) for p in patterns if len(p) > 3):
            return code
    for code, patterns in LOCATION_COUNTRY_PATTERNS.items():
        if any(_mentions(text, p) for p in patterns if len(p) <= 3):
            return code
    return None


def hostname_tld(hostname: str) -> str:
    hostname = hostname.lower().rstrip(".")
    return "." + hostname.rsplit(".", 1)[-1] if "." in hostname else ""


def tld_matches_country(hostname: str, country: Optional[str]) -> bool:
    """True when the hostname's TLD is the target country's TLD."""
    context = get_country_context(country)
    if context is None:
        iso2 = to_iso2(country)
        if not iso2 or iso2 == "EU":
            return True
        return hostname_tld(hostname) == "." + iso2.lower()
    return hostname_tld(hostname) == context.tld
