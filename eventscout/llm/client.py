"""Language model port and the Ollama-backed implementation."""

from functools import lru_cache
from typing import Protocol, runtime_checkable

import structlog
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import PromptTemplate
from langchain_ollama import OllamaLLM
from pydantic_settings import BaseSettings, SettingsConfigDict

from eventscout.llm.json_response import LLMResponseError

logger = structlog.get_logger(__name__)


class LLMSettings(BaseSettings):
    """LLM configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    ollama_base_url: str = "http://localhost:11434"
    model_name: str = "gpt-oss:20b"
    fallback_model_name: str = "gemma3:latest"  # Used when the primary returns empty
    temperature: float = 0.0
    request_timeout: int = 120
    num_ctx: int = 8192
    num_predict: int = 2048


@lru_cache
def get_llm_settings() -> LLMSettings:
    """Get cached LLM settings."""
    return LLMSettings()


@runtime_checkable
class LanguageModel(Protocol):
    """Anything that turns a prompt into text (expected to be JSON)."""

    async def generate_content(self, prompt: str) -> str:
        ...


def create_llm_client(settings: LLMSettings | None = None, use_fallback: bool = False) -> OllamaLLM:
    """Create configured Ollama LLM client.

    Args:
        settings: Optional custom settings. Uses defaults if not provided.
        use_fallback: If True, use the fallback model instead of primary.

    Returns:
        Configured OllamaLLM instance.
    """
    settings = settings or get_llm_settings()
    model = settings.fallback_model_name if use_fallback else settings.model_name

    return OllamaLLM(
        model=model,
        base_url=settings.ollama_base_url,
        temperature=settings.temperature,
        timeout=settings.request_timeout,
        num_ctx=settings.num_ctx,
        num_predict=settings.num_predict,
    )


class OllamaLanguageModel:
    """``LanguageModel`` backed by a local Ollama server via langchain."""

    def __init__(self, settings: LLMSettings | None = None):
        self.settings = settings or get_llm_settings()
        self._prompt = PromptTemplate.from_template("{prompt}")
        self._primary = self._prompt | create_llm_client(self.settings) | StrOutputParser()
        self._fallback = (
            self._prompt | create_llm_client(self.settings, use_fallback=True) | StrOutputParser()
        )

    async def generate_content(self, prompt: str) -> str:
        """Invoke the primary model, falling back to the secondary on empty output.

        Raises:
            LLMResponseError: If both models return empty responses.
        """
        response = await self._primary.ainvoke({"prompt": prompt})
        if response and response.strip():
            return response

        logger.warning(
            "llm_primary_empty_trying_fallback",
            primary_model=self.settings.model_name,
            fallback_model=self.settings.fallback_model_name,
        )
        response = await self._fallback.ainvoke({"prompt": prompt})
        if response and response.strip():
            return response

        raise LLMResponseError(
            f"Both primary ({self.settings.model_name}) and fallback "
            f"({self.settings.fallback_model_name}) returned empty responses"
        )
