"""Service settings read from ``JD_*`` environment variables (and a ``.env`` file)."""

import json
from typing import Annotated, Any, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from jd_refiner.llm import LLMConfig, ProviderType
from jd_refiner.refinement.models import RefinementConfig, RefinementPolicy


class ServiceSettings(BaseSettings):
    """Settings for the HTTP service and the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="JD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: ProviderType = ProviderType.OPENAI
    model: Optional[str] = None
    api_key: Optional[SecretStr] = Field(
        default=None,
        description="Overrides the provider's own environment variable",
    )

    policy: RefinementPolicy = RefinementPolicy.LENIENT_ECHO
    request_timeout_seconds: float = Field(default=90.0, gt=0.0)
    max_tokens: int = Field(default=4000, ge=256)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    store_dir: str = Field(default="data/analyses", description="Saved analyses directory")
    api_tokens: str = Field(
        default="",
        description="Comma-separated token:user pairs accepted as bearer tokens",
    )
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:3000"]
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        """Accept a comma-separated string or a JSON list."""
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ServiceSettings":
        """Build settings from the environment; variables already set win over the file."""
        return cls(_env_file=env_file or ".env")

    def refinement_config(self) -> RefinementConfig:
        return RefinementConfig(
            llm=LLMConfig(provider=self.provider, model=self.model, api_key=self.api_key),
            policy=self.policy,
            request_timeout_seconds=self.request_timeout_seconds,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
