"""Configuration models for LLM integration."""

from typing import Any, Optional

from pydantic import BaseModel, Field, SecretStr

from .providers.base import LLMProvider, ProviderType
from .providers.factory import create_llm_provider, get_default_model


class LLMConfig(BaseModel):
    """Connection settings for the completion service."""

    provider: ProviderType = Field(
        default=ProviderType.OPENAI,
        description="LLM provider to use (anthropic, gemini or openai)",
    )
    model: Optional[str] = Field(
        default=None,
        description="Model name. Defaults to the provider's default model",
    )

    api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key. If not set, reads from environment variable",
    )
    api_base_url: Optional[str] = Field(
        default=None,
        description="Custom API base URL (for proxies)",
    )
    timeout_seconds: float = Field(default=120.0, ge=1.0, le=600.0)
    max_retries: int = Field(default=0, ge=0, le=10)
    requests_per_minute: Optional[int] = Field(default=None, ge=1)

    track_costs: bool = True
    log_requests: bool = False
    log_responses: bool = False

    def get_model_name(self) -> str:
        """Get the configured model, or the provider default."""
        return self.model or get_default_model(self.provider)

    def get_api_key_value(self) -> Optional[str]:
        """Get the API key value as a plain string."""
        if self.api_key:
            return self.api_key.get_secret_value()
        return None

    def create_provider(self, **overrides: Any) -> LLMProvider:
        """Build an (unstarted) provider from these settings."""
        kwargs: dict[str, Any] = {
            "timeout_seconds": self.timeout_seconds,
            "max_retries": self.max_retries,
            "requests_per_minute": self.requests_per_minute,
            "track_costs": self.track_costs,
            "log_requests": self.log_requests,
            "log_responses": self.log_responses,
        }
        if self.api_base_url:
            kwargs["api_base_url"] = self.api_base_url
        kwargs.update(overrides)

        return create_llm_provider(
            self.provider,
            api_key=self.get_api_key_value(),
            default_model=self.get_model_name(),
            **kwargs,
        )
