"""
LLM Factory - builds the chat model used as the ranking service.
"""
from typing import Optional

from langchain_core.language_models import BaseChatModel

from .config import AIConfig, PROVIDER_KEY_ENV, get_config
from .exceptions import RankerNotConfigured


class LLMFactory:
    """Central factory for creating LLM instances across providers."""

    PROVIDER_DEFAULTS = {
        "gemini": "gemini-2.0-flash",
        "openrouter": "google/gemini-2.0-flash-001",
        "ollama": "llama3.1",
    }

    @classmethod
    def create(
        cls,
        provider: str = "gemini",
        model: Optional[str] = None,
        temperature: float = 0.0,
        api_key: Optional[str] = None,
        **kwargs
    ) -> BaseChatModel:
        """
        Create an LLM instance for the specified provider.

        Args:
            provider: LLM provider ("gemini", "openrouter", "ollama")
            model: Model name (provider-specific). If None, uses provider default.
            temperature: Sampling temperature
            api_key: Credential; required for every provider except ollama
            **kwargs: Additional provider-specific arguments

        Raises:
            RankerNotConfigured: the provider needs a credential and none was given
            ValueError: unknown provider
        """
        if provider not in cls.PROVIDER_DEFAULTS:
            raise ValueError(f"Unknown provider: {provider}. Supported: {', '.join(cls.PROVIDER_DEFAULTS)}")

        model = model or cls.PROVIDER_DEFAULTS[provider]
        if PROVIDER_KEY_ENV.get(provider) and not api_key:
            raise RankerNotConfigured(
                f"{' or '.join(PROVIDER_KEY_ENV[provider])} environment variable required"
            )

        if provider == "gemini":
            return cls._create_gemini(model, temperature, api_key, **kwargs)
        elif provider == "openrouter":
            return cls._create_openrouter(model, temperature, api_key, **kwargs)
        return cls._create_ollama(model, temperature, **kwargs)

    @classmethod
    def from_config(cls, ai_config: Optional[AIConfig] = None) -> BaseChatModel:
        """Create the LLM described by the AI section of the configuration."""
        ai_config = ai_config or get_config().ai
        return cls.create(
            provider=ai_config.provider,
            model=ai_config.model,
            temperature=ai_config.temperature,
            api_key=ai_config.resolve_api_key(),
            base_url=ai_config.base_url,
            timeout=ai_config.timeout,
        )

    @classmethod
    def _create_gemini(cls, model: str, temperature: float, api_key: str, **kwargs) -> BaseChatModel:
        """Create a Google Gemini chat model."""
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=temperature,
            timeout=kwargs.get("timeout"),
            max_retries=0,
        )

    @classmethod
    def _create_openrouter(cls, model: str, temperature: float, api_key: str, **kwargs) -> BaseChatModel:
        """Create OpenRouter LLM via OpenAI-compatible API."""
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=model,
            base_url=kwargs.get("base_url") or "https://openrouter.ai/api/v1",
            api_key=api_key,
            temperature=temperature,
            timeout=kwargs.get("timeout"),
            max_retries=0,
        )

    @classmethod
    def _create_ollama(cls, model: str, temperature: float, **kwargs) -> BaseChatModel:
        """Create Ollama LLM for local models."""
        from langchain_ollama import ChatOllama

        return ChatOllama(
            model=model,
            temperature=temperature,
            base_url=kwargs.get("base_url") or "http://localhost:11434",
        )

    @classmethod
    def list_providers(cls) -> list[str]:
        """List available providers."""
        return list(cls.PROVIDER_DEFAULTS.keys())

    @classmethod
    def get_default_model(cls, provider: str) -> str:
        """Get default model for a provider."""
        return cls.PROVIDER_DEFAULTS.get(provider, "")
