"""Anthropic (Claude) provider."""

from typing import Any, Optional

import anthropic

from .base import JSON_ONLY_INSTRUCTION, LLMProvider, ProviderReply, ProviderType, TokenUsage

# Anthropic model pricing per million tokens
ANTHROPIC_PRICING = {
    "claude-opus-4-20250514": {"input": 15.00, "output": 75.00},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
}


class AnthropicProvider(LLMProvider):
    """
    Anthropic (Claude) provider.

    Claude has no native JSON response mode, so ``json_mode`` is honoured by
    appending a JSON-only instruction to the system prompt.
    """

    api_key_env_vars = ("ANTHROPIC_API_KEY",)
    pricing = ANTHROPIC_PRICING
    default_pricing = ANTHROPIC_PRICING["claude-sonnet-4-20250514"]

    def __init__(
        self,
        default_model: str = "claude-sonnet-4-20250514",
        **kwargs: Any,
    ):
        super().__init__(default_model=default_model, **kwargs)

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.ANTHROPIC

    @property
    def retryable_errors(self) -> tuple[type[BaseException], ...]:
        return (
            anthropic.RateLimitError,
            anthropic.APIConnectionError,
            anthropic.InternalServerError,
        )

    def _create_client(self, api_key: str) -> anthropic.AsyncAnthropic:
        return anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=self.api_base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

    async def _close_client(self, client: anthropic.AsyncAnthropic) -> None:
        await client.close()

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
        system_prompt = system or ""
        if json_mode:
            system_prompt = f"{system_prompt}\n\n{JSON_ONLY_INSTRUCTION}".strip()

        request: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages or [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt
        request.update(kwargs)
        return request

    async def _send(self, client: anthropic.AsyncAnthropic, request: dict[str, Any]) -> Any:
        return await client.messages.create(**request)

    def _read_reply(self, response: Any, model: str) -> ProviderReply:
        text = "".join(block.text for block in response.content if block.type == "text")
        return ProviderReply(
            content=text,
            model=response.model or model,
            usage=TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
            stop_reason=response.stop_reason,
        )
