"""
LLM integration for the job-description refiner.

- Multi-provider support (OpenAI, Anthropic Claude, Google Gemini)
- Async providers with retry logic and cost tracking
- JSON extraction from model output

Usage:
    from jd_refiner.llm import LLMConfig, ProviderType

    provider = LLMConfig(provider=ProviderType.OPENAI).create_provider()
    async with provider:
        response = await provider.complete("Hello, world!", json_mode=True)
"""

from .config import LLMConfig
from .parser import ParseError, extract_json, parse_json, repair_truncated_json
from .providers import (
    CostTracker,
    LLMProvider,
    LLMResponse,
    ProviderType,
    TokenUsage,
    create_llm_provider,
    get_default_model,
)

__all__ = [
    # Providers
    "LLMProvider",
    "LLMResponse",
    "ProviderType",
    "TokenUsage",
    "CostTracker",
    "create_llm_provider",
    "get_default_model",
    # Config
    "LLMConfig",
    # Parser
    "ParseError",
    "extract_json",
    "parse_json",
    "repair_truncated_json",
]
