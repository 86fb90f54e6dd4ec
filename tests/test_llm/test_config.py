"""Tests for LLM configuration."""

import pytest
from pydantic import ValidationError

from jd_refiner.llm import LLMConfig, ProviderType


class TestLLMConfig:
    """Tests for LLMConfig."""

    def test_defaults(self):
        """The default provider and model match the refinement defaults."""
        config = LLMConfig()
        assert config.provider == ProviderType.OPENAI
        assert config.get_model_name() == "gpt-4o"
        assert config.get_api_key_value() is None
        assert config.max_retries == 0
        assert config.requests_per_minute is None

    def test_model_override(self):
        config = LLMConfig(provider=ProviderType.ANTHROPIC, model="claude-3-5-haiku-20241022")
        assert config.get_model_name() == "claude-3-5-haiku-20241022"

    def test_provider_default_models(self):
        assert LLMConfig(provider=ProviderType.ANTHROPIC).get_model_name().startswith("claude")
        assert LLMConfig(provider=ProviderType.GEMINI).get_model_name().startswith("gemini")

    def test_api_key_is_secret(self):
        """The key is masked in repr but retrievable."""
        config = LLMConfig(api_key="sk-test-123")
        assert "sk-test-123" not in repr(config)
        assert config.get_api_key_value() == "sk-test-123"

    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            LLMConfig(timeout_seconds=0)

    def test_create_provider(self):
        """create_provider builds an unstarted provider of the configured type."""
        provider = LLMConfig(api_key="sk-test", max_retries=1).create_provider()
        assert provider.provider_type == ProviderType.OPENAI
        assert provider.default_model == "gpt-4o"
        assert provider.max_retries == 1
        assert not provider.is_started
