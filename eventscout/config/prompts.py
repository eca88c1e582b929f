"""LLM prompt templates for pipeline stages."""

# Common instruction to suppress thinking and ensure JSON-only output
# Note: curly braces must be escaped as {{ }} for LangChain templates
JSON_ONLY_INSTRUCTION = """
CRITICAL: You MUST respond with ONLY a valid JSON object.
- Do NOT include any thinking, reasoning, or explanation.
- Do NOT use markdown code blocks.
- Start your response directly with the opening brace
- No text before or after the JSON."""

PRIORITIZATION_CONTENT_PROMPT = """Score this web page for relevance as a professional event (conference, summit, workshop).

URL: {url}
TITLE: {title}
DESCRIPTION: {description}
SEARCH QUERY: {query}
TARGET COUNTRY: {country}
DATE WINDOW: {date_window}

PAGE CONTENT (truncated):
---
{content}
---

Rate each criterion from 0 to 1:
- is_event: Is this an actual event page (not a company page, blog post or general info)?
- has_agenda: Does it contain agenda, program, schedule or session details?
- has_speakers: Does it list speakers, presenters or keynotes?
- is_recent: Is this a current or upcoming event (not a past one)?
- is_relevant: Does it match the search query themes?
- is_country_relevant: Does the event take place in the target country? (omit when no target country)

Also give normalized_date: the event start date as YYYY-MM-DD, or null if unknown.

Be strict in scoring. Only give high scores (0.8+) to clearly relevant event pages.

OUTPUT FORMAT:
{{"is_event": 0.9, "has_agenda": 0.7, "has_speakers": 0.8, "is_recent": 0.9, "is_relevant": 0.8, "is_country_relevant": 0.9, "normalized_date": "2026-05-12"}}
""" + JSON_ONLY_INSTRUCTION

PRIORITIZATION_URL_PROMPT = """Score this URL for relevance as a professional event page, using the URL alone.

URL: {url}
SEARCH QUERY: {query}
TARGET COUNTRY: {country}

Rate each criterion from 0 to 1:
- is_event: Is this an actual event page?
- has_agenda: Is it likely to contain agenda or schedule details?
- has_speakers: Is it likely to list speakers?
- is_recent: Is it for a current or upcoming event?
- is_relevant: Does it match the search query themes?
- is_country_relevant: Is the event likely held in the target country? (omit when no target country)

OUTPUT FORMAT:
{{"is_event": 0.9, "has_agenda": 0.7, "has_speakers": 0.8, "is_recent": 0.9, "is_relevant": 0.8, "normalized_date": null}}
""" + JSON_ONLY_INSTRUCTION

ENHANCEMENT_PROMPT = """Enhance and validate this event data extracted from: {url}

CURRENT EXTRACTED DATA:
- Title: {title}
- Description: {description}
- Date: {date}
- Location: {location}
- Venue: {venue}
- Speakers: {speakers}
- Agenda: {agenda}

RELATED PAGES (speakers, agenda, sponsors):
{related_links}

TASKS:
1. Correct obvious errors or inconsistencies
2. Standardize the date as YYYY-MM-DD
3. Format location as "City, Country" with the full country name; use null if unclear
4. Extract speakers as actual person names in "First Last" format with job title and company
5. Never return job titles, organizations or generic terms ("Speaker", "Panelist") as names

Keep original values when they are already good. Use an empty array when no speakers are found.

OUTPUT FORMAT:
{{
  "title": "Enhanced title",
  "description": "Enhanced description",
  "date": "2026-05-12",
  "location": "Frankfurt, Germany",
  "venue": "Messe Frankfurt",
  "speakers": [{{"name": "Jane Doe", "title": "General Counsel", "company": "Example AG"}}],
  "agenda": ["Opening keynote", "Panel: regulatory outlook"],
  "confidence": 0.85,
  "notes": "Brief description of enhancements made"
}}
""" + JSON_ONLY_INSTRUCTION
