"""JSON extraction from noisy language-model output."""

import json
import re

import structlog
from langchain_core.output_parsers import JsonOutputParser

logger = structlog.get_logger(__name__)


class LLMResponseError(Exception):
    """The model returned something that is not usable JSON."""

    pass


def _extract_json_from_text(text: str) -> str | None:
    """Return the first balanced ``{...}`` object in ``text``, ignoring braces in strings."""
    brace_count = 0
    start_idx = None
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            if brace_count == 0:
                start_idx = i
            brace_count += 1
        elif char == "}" and brace_count > 0:
            brace_count -= 1
            if brace_count == 0 and start_idx is not None:
                return text[start_idx:i + 1]

    return None


def _clean_json_string(text: str) -> str:
    text = text.strip("﻿​‌‍")
    # Trailing commas before } or ]
    return re.sub(r",(\s*[}\]])", r"\1", text)


def parse_json_response(response: str) -> dict:
    """Parse a JSON object from model output.

    Handles responses wrapped in markdown code fences, preceded by reasoning
    text, or carrying trailing commas.

    Args:
        response: Raw model response string.

    Returns:
        Parsed JSON object.

    Raises:
        LLMResponseError: If no JSON object can be recovered.
    """
    if not response or not response.strip():
        raise LLMResponseError("Empty response from language model")

    text = response.strip()

    # Strategy 1: code fences (```json, ```JSON, bare ```)
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text, re.IGNORECASE)
    if match and match.group(1).strip().startswith("{"):
        text = match.group(1).strip()

    # Strategy 2: langchain's own parser
    try:
        parsed = JsonOutputParser().parse(text)
        if isinstance(parsed, dict):
            return parsed
    except Exception as e:
        logger.debug("json_parser_failed", error=str(e))

    # Strategy 3: brace matching on the cleaned text, then on the raw response
    for source in (text, response):
        extracted = _extract_json_from_text(source)
        if not extracted:
            continue
        try:
            parsed = json.loads(_clean_json_string(extracted))
        except json.JSONDecodeError as e:
            logger.debug("extracted_parse_failed", error=str(e))
            continue
        if isinstance(parsed, dict):
            return parsed

    logger.warning(
        "json_parse_error",
        response_preview=text[:300],
    )
    raise LLMResponseError(f"Failed to parse model JSON response. Response preview: {text[:150]}")
