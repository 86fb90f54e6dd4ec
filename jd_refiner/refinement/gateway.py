"""Completion gateway: one model call in, one parsed document (or a typed failure) out."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import anthropic
import openai

from jd_refiner.llm.parser import ParseError, parse_json
from jd_refiner.llm.providers.base import LLMProvider

from .errors import (
    RefinementError,
    UpstreamEmptyResponseError,
    UpstreamFailureError,
    UpstreamMalformedJsonError,
    UpstreamTimeoutError,
)
from .prompts import CompiledPrompt

logger = logging.getLogger(__name__)

TIMEOUT_ERRORS = (
    asyncio.TimeoutError,
    TimeoutError,
    openai.APITimeoutError,
    anthropic.APITimeoutError,
)


@dataclass
class CompletionText:
    """Raw completion text plus usage."""

    text: str
    tokens_used: int = 0
    cost_usd: float = 0.0
    latency_ms: float = 0.0
    model: Optional[str] = None


@dataclass
class CompletionResult:
    """A completion parsed into a JSON object."""

    document: dict[str, Any]
    tokens_used: int = 0
    cost_usd: float = 0.0
    latency_ms: float = 0.0
    model: Optional[str] = None


class CompletionGateway:
    """
    Adapts an LLMProvider to the refinement pipeline.

    Makes exactly one attempt per call. Transient-error retries, if any, live
    in the provider. The parsed object is not validated field by field.
    """

    def __init__(
        self,
        provider: LLMProvider,
        max_tokens: int = 4000,
        temperature: float = 0.7,
        model: Optional[str] = None,
    ):
        self.provider = provider
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.model = model

    async def complete(
        self,
        system: str,
        user: str,
        *,
        json_mode: bool = True,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> CompletionText:
        """
        Call the provider once.

        Raises:
            UpstreamTimeoutError: The provider timed out
            UpstreamFailureError: Network, rate-limit, auth or any other provider error
        """
        try:
            response = await self.provider.complete(
                prompt=user,
                system=system,
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature if temperature is None else temperature,
                json_mode=json_mode,
                model=self.model,
            )
        except RefinementError:
            raise
        except TIMEOUT_ERRORS as e:
            logger.warning(f"Completion timed out: {e}")
            raise UpstreamTimeoutError(details=f"Completion service timed out: {e}") from e
        except Exception as e:
            logger.error(f"Completion failed: {type(e).__name__}: {e}")
            raise UpstreamFailureError(details=str(e) or type(e).__name__) from e

        return CompletionText(
            text=response.content or "",
            tokens_used=response.usage.total_tokens,
            cost_usd=response.cost_usd,
            latency_ms=response.latency_ms,
            model=response.model,
        )

    async def complete_document(self, prompt: CompiledPrompt) -> CompletionResult:
        """
        Run a compiled prompt and parse the reply as a JSON object.

        Raises:
            UpstreamEmptyResponseError: The reply carried no content
            UpstreamMalformedJsonError: The reply was not a JSON object
            UpstreamTimeoutError, UpstreamFailureError: See ``complete``
        """
        completion = await self.complete(prompt.system, prompt.user, json_mode=True)

        if not completion.text.strip():
            raise UpstreamEmptyResponseError(details="No response from completion service")

        try:
            parsed = parse_json(completion.text, strict=True)
        except ParseError as e:
            logger.warning(f"Unparseable completion ({len(completion.text)} chars): {e}")
            raise UpstreamMalformedJsonError(
                details=str(e), raw_content=completion.text
            ) from e

        if not isinstance(parsed, dict):
            raise UpstreamMalformedJsonError(
                details=f"Expected a JSON object, got {type(parsed).__name__}",
                raw_content=completion.text,
            )

        return CompletionResult(
            document=parsed,
            tokens_used=completion.tokens_used,
            cost_usd=completion.cost_usd,
            latency_ms=completion.latency_ms,
            model=completion.model,
        )
