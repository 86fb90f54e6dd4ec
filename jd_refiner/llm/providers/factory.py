"""Factory for creating LLM providers."""

import logging
from typing import Any, Optional

from .base import LLMProvider, ProviderType

logger = logging.getLogger(__name__)


DEFAULT_MODELS = {
    ProviderType.ANTHROPIC: "claude-sonnet-4-20250514",
    ProviderType.GEMINI: "gemini-2.5-flash",
    ProviderType.OPENAI: "gpt-4o",
}


def _coerce_provider(provider: ProviderType | str) -> ProviderType:
    if isinstance(provider, ProviderType):
        return provider
    try:
        return ProviderType(provider.lower())
    except ValueError:
        raise ValueError(
            f"Unknown provider: {provider}. "
            f"Supported providers: {[p.value for p in ProviderType]}"
        )


def create_llm_provider(
    provider: ProviderType | str,
    api_key: Optional[str] = None,
    default_model: Optional[str] = None,
    **kwargs: Any,
) -> LLMProvider:
    """
    Create an LLM provider instance.

    Args:
        provider: The provider type (ProviderType enum or string)
        api_key: Optional API key (falls back to environment variables)
        default_model: Optional default model name
        **kwargs: Additional provider-specific arguments

    Returns:
        An LLMProvider instance

    Raises:
        ValueError: If the provider type is unknown

    Example:
        provider = create_llm_provider("openai", default_model="gpt-4o")
        async with provider:
            response = await provider.complete("Hello!", json_mode=True)
    """
    provider = _coerce_provider(provider)
    model = default_model or get_default_model(provider)

    if provider == ProviderType.ANTHROPIC:
        from .anthropic import AnthropicProvider

        return AnthropicProvider(api_key=api_key, default_model=model, **kwargs)

    if provider == ProviderType.GEMINI:
        from .gemini import GeminiProvider

        return GeminiProvider(api_key=api_key, default_model=model, **kwargs)

    from .openai import OpenAIProvider

    return OpenAIProvider(api_key=api_key, default_model=model, **kwargs)


def get_default_model(provider: ProviderType | str) -> str:
    """Get the default model for a provider."""
    return DEFAULT_MODELS[_coerce_provider(provider)]
