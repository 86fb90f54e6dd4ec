"""
LLM Provider implementations.

A unified interface over Anthropic, Google Gemini and OpenAI so the
refinement pipeline can switch vendors through configuration.
"""

from .base import (
    CostTracker,
    LLMProvider,
    LLMResponse,
    ProviderType,
    TokenUsage,
)
from .factory import create_llm_provider, get_default_model

__all__ = [
    # Base
    "LLMProvider",
    "LLMResponse",
    "ProviderType",
    "TokenUsage",
    "CostTracker",
    # Factory
    "create_llm_provider",
    "get_default_model",
]
