"""Base LLM provider interface and common types."""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    """Supported LLM providers."""

    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OPENAI = "openai"


# Appended to the system prompt for providers without a native JSON mode
JSON_ONLY_INSTRUCTION = (
    "Respond ONLY with a single valid JSON object. "
    "Do not wrap it in markdown code fences and do not add any text outside the JSON."
)


@dataclass
class TokenUsage:
    """Track token usage for a request."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class LLMResponse:
    """Provider-agnostic response from an LLM call."""

    content: str
    model: str
    usage: TokenUsage
    stop_reason: Optional[str] = None
    latency_ms: float = 0.0
    raw_response: Optional[Any] = None
    provider: Optional[ProviderType] = None
    cost_usd: float = 0.0


@dataclass
class CostTracker:
    """Track cumulative costs across requests."""

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost_usd: float = 0.0
    request_count: int = 0
    _costs_by_model: dict[str, float] = field(default_factory=dict)

    def add(self, response: LLMResponse, cost_usd: float) -> None:
        """Add a response to the tracker."""
        self.total_input_tokens += response.usage.input_tokens
        self.total_output_tokens += response.usage.output_tokens
        self.total_cost_usd += cost_usd
        self.request_count += 1

        model_key = response.model
        self._costs_by_model[model_key] = (
            self._costs_by_model.get(model_key, 0.0) + cost_usd
        )

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of tracked costs."""
        return {
            "total_requests": self.request_count,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_cost_usd": round(self.total_cost_usd, 4),
            "costs_by_model": {k: round(v, 4) for k, v in self._costs_by_model.items()},
        }


def calculate_cost(
    usage: TokenUsage,
    pricing: dict[str, float],
) -> float:
    """Cost in USD for a usage record, given per-million-token pricing."""
    input_cost = (usage.input_tokens / 1_000_000) * pricing["input"]
    output_cost = (usage.output_tokens / 1_000_000) * pricing["output"]
    return input_cost + output_cost


@dataclass
class ProviderReply:
    """What a vendor call returned, before usage is priced."""

    content: str
    model: str
    usage: TokenUsage
    stop_reason: Optional[str] = None
    raw: Optional[Any] = None


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Handles what every vendor shares: API key lookup, client lifecycle,
    request pacing, retries of transient errors and cost tracking. A
    concrete provider supplies the client, builds its request, sends it
    and reads the reply.

    Usage:
        provider = create_llm_provider(ProviderType.OPENAI)
        async with provider:
            response = await provider.complete("Hello, world!", json_mode=True)
    """

    # Checked in order when no api_key is passed
    api_key_env_vars: tuple[str, ...] = ()
    pricing: dict[str, dict[str, float]] = {}
    default_pricing: dict[str, float] = {"input": 0.0, "output": 0.0}

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = "",
        api_base_url: Optional[str] = None,
        timeout_seconds: float = 120.0,
        max_retries: int = 0,
        requests_per_minute: Optional[int] = None,
        track_costs: bool = True,
        log_requests: bool = False,
        log_responses: bool = False,
    ):
        self._api_key = api_key
        self.default_model = default_model
        self.api_base_url = api_base_url
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.requests_per_minute = requests_per_minute
        self.track_costs = track_costs
        self.log_requests = log_requests
        self.log_responses = log_responses

        self.cost_tracker = CostTracker()
        self._client: Optional[Any] = None
        self._started = False
        self._rate_limit_lock = asyncio.Lock()
        self._last_request_time: float = 0.0

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        ...

    @property
    def is_started(self) -> bool:
        return self._started

    async def __aenter__(self) -> "LLMProvider":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.stop()

    def _get_api_key(self) -> str:
        """Get API key from config or environment."""
        if self._api_key:
            return self._api_key

        for env_var in self.api_key_env_vars:
            api_key = os.environ.get(env_var)
            if api_key:
                return api_key

        raise ValueError(
            f"{self.provider_type.value} API key not found. Set "
            f"{' or '.join(self.api_key_env_vars)} or pass api_key parameter."
        )

    async def start(self) -> None:
        """Create the vendor client."""
        self._client = self._create_client(self._get_api_key())
        self._started = True
        logger.info(f"{self.provider_type.value} provider initialized")

    async def stop(self) -> None:
        """Release the vendor client."""
        if self._client is not None:
            await self._close_client(self._client)
            self._client = None
        self._started = False
        logger.info(f"{self.provider_type.value} provider closed")

    def _ensure_client(self) -> Any:
        if self._client is None:
            raise RuntimeError(
                "Provider not initialized. Use 'async with provider' or call start()."
            )
        return self._client

    async def _apply_rate_limit(self) -> None:
        """Space requests evenly when a requests-per-minute cap is set."""
        if self.requests_per_minute:
            min_interval = 60.0 / self.requests_per_minute
            async with self._rate_limit_lock:
                elapsed = time.time() - self._last_request_time
                if elapsed < min_interval:
                    await asyncio.sleep(min_interval - elapsed)
                self._last_request_time = time.time()

    @abstractmethod
    def _create_client(self, api_key: str) -> Any:
        ...

    async def _close_client(self, client: Any) -> None:
        pass

    @property
    def retryable_errors(self) -> tuple[type[BaseException], ...]:
        """Transient vendor errors worth another attempt."""
        return ()

    @abstractmethod
    def _build_request(
        self,
        prompt: str,
        system: Optional[str],
        messages: Optional[list[dict[str, str]]],
        max_tokens: int,
        temperature: float,
        json_mode: bool,
        model: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        ...

    @abstractmethod
    async def _send(self, client: Any, request: dict[str, Any]) -> Any:
        ...

    @abstractmethod
    def _read_reply(self, response: Any, model: str) -> ProviderReply:
        ...

    async def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        messages: Optional[list[dict[str, str]]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
        model: Optional[str] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Send a completion request to the LLM.

        Args:
            prompt: The user prompt (ignored if messages provided)
            system: Optional system prompt
            messages: Optional list of message dicts (overrides prompt)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            json_mode: Ask the provider to return a single JSON object
            model: Model to use (defaults to the provider's default model)
            **kwargs: Provider-specific arguments

        Returns:
            LLMResponse with content, usage, and metadata
        """
        client = self._ensure_client()
        model = model or self.default_model
        request = self._build_request(
            prompt, system, messages, max_tokens, temperature, json_mode, model, **kwargs
        )

        await self._apply_rate_limit()
        start_time = time.time()

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=1.0, max=30.0, exp_base=2.0),
            retry=retry_if_exception_type(self.retryable_errors),
            reraise=True,
        ):
            with attempt:
                if self.log_requests:
                    logger.debug(f"{self.provider_type.value} request: {request}")
                response = await self._send(client, request)

        reply = self._read_reply(response, model)
        cost_usd = self.calculate_cost(reply.usage, reply.model)

        llm_response = LLMResponse(
            content=reply.content,
            model=reply.model,
            usage=reply.usage,
            stop_reason=reply.stop_reason,
            latency_ms=(time.time() - start_time) * 1000,
            raw_response=response if self.log_responses else None,
            provider=self.provider_type,
            cost_usd=cost_usd,
        )

        if self.track_costs:
            self.cost_tracker.add(llm_response, cost_usd)
        if self.log_responses:
            logger.debug(f"{self.provider_type.value} response: {reply.content[:200]}...")

        return llm_response

    def calculate_cost(self, usage: TokenUsage, model: str) -> float:
        """Calculate cost in USD for token usage."""
        return calculate_cost(usage, self.pricing.get(model, self.default_pricing))

    def get_cost_summary(self) -> dict[str, Any]:
        """Get a summary of all tracked costs."""
        return self.cost_tracker.get_summary()

    def reset_cost_tracker(self) -> None:
        """Reset the cost tracker."""
        self.cost_tracker = CostTracker()
