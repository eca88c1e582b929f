"""Person-name heuristics shared by the parser, extractor and publisher."""

import re

NAME_SHAPE = re.compile(r"^[A-Z][a-z]+\s+[A-Z][a-z]+")
STRICT_NAME = re.compile(r"^[A-Z][a-z]+ [A-Z][a-z]+$")
MIDDLE_INITIAL_NAME = re.compile(r"^[A-Z][a-z]+ [A-Z]\.? [A-Z][a-z]+$")

# Words that show a "First Last" match is a job title, organization or page chrome
NAME_DENYLIST = frozenset({
    # Job titles
    "chief", "officer", "director", "manager", "president", "head", "partner",
    "founder", "ceo", "cto", "cfo", "coo", "vice", "senior", "lead", "counsel",
    "associate", "principal", "chair", "chairman", "secretary", "general",
    # Organizations
    "inc", "ltd", "gmbh", "llc", "llp", "group", "company", "association",
    "university", "institute", "bank", "solutions", "services", "global",
    "international", "consulting", "foundation", "authority", "commission",
    # Event and page vocabulary
    "speaker", "speakers", "keynote", "agenda", "program", "programme", "session",
    "conference", "summit", "event", "events", "register", "registration",
    "tickets", "sponsor", "sponsors", "privacy", "policy", "terms", "cookie",
    "contact", "about", "read", "learn", "more", "home", "news", "blog", "venue",
    "hotel", "center", "centre", "welcome", "panel", "discussion", "networking",
    "lunch", "coffee", "break", "data", "protection", "compliance", "legal",
    "risk", "management", "new", "york",
    # Calendar words
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december", "monday", "tuesday",
    "wednesday", "thursday", "friday", "saturday", "sunday",
})


def is_valid_person_name(name: str) -> bool:
    """Check a speaker name looks like "Firstname Lastname" and is not chrome."""
    name = (name or "").strip()
    if len(name) <= 5 or len(name) > 60:
        return False
    if not NAME_SHAPE.match(name):
        return False
    if "http" in name or "@" in name or "www" in name:
        return False
    words = re.findall(r"[a-z]+", name.lower())
    if len(words) > 5:
        return False
    return not any(word in NAME_DENYLIST for word in words)


def speaker_name_confidence(name: str) -> float:
    name = name.strip()
    if STRICT_NAME.match(name):
        return 0.9
    if MIDDLE_INITIAL_NAME.match(name):
        return 0.8
    return 0.6
