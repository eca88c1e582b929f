"""Language model integration."""

from .client import LanguageModel, LLMSettings, OllamaLanguageModel, create_llm_client, get_llm_settings
from .json_response import LLMResponseError, parse_json_response

__all__ = [
    "LanguageModel",
    "LLMSettings",
    "OllamaLanguageModel",
    "create_llm_client",
    "get_llm_settings",
    "LLMResponseError",
    "parse_json_response",
]
