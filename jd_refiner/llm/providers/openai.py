"""OpenAI chat-completions provider."""

from typing import Any, Optional

import openai

from .base import LLMProvider, ProviderReply, ProviderType, TokenUsage

# OpenAI model pricing per million tokens
OPENAI_PRICING = {
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4-turbo-preview": {"input": 10.00, "output": 30.00},
}


class OpenAIProvider(LLMProvider):
    """
    OpenAI chat-completions provider.

    ``json_mode`` maps to ``response_format={"type": "json_object"}``.

    Usage:
        provider = OpenAIProvider(default_model="gpt-4o")
        async with provider:
            response = await provider.complete("Hello!", json_mode=True)
    """

    api_key_env_vars = ("OPENAI_API_KEY",)
    pricing = OPENAI_PRICING
    default_pricing = OPENAI_PRICING["gpt-4o"]

    def __init__(
        self,
        default_model: str = "gpt-4o",
        **kwargs: Any,
    ):
        super().__init__(default_model=default_model, **kwargs)

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    @property
    def retryable_errors(self) -> tuple[type[BaseException], ...]:
        return (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError)

    def _create_client(self, api_key: str) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(
            api_key=api_key,
            base_url=self.api_base_url,
            timeout=self.timeout_seconds,
            # Retries are driven by tenacity in LLMProvider.complete
            max_retries=0,
        )

    async def _close_client(self, client: openai.AsyncOpenAI) -> None:
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
        message_list: list[dict[str, str]] = []
        if system:
            message_list.append({"role": "system", "content": system})
        message_list.extend(messages or [{"role": "user", "content": prompt}])

        request: dict[str, Any] = {
            "model": model,
            "messages": message_list,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}
        request.update(kwargs)
        return request

    async def _send(self, client: openai.AsyncOpenAI, request: dict[str, Any]) -> Any:
        return await client.chat.completions.create(**request)

    def _read_reply(self, response: Any, model: str) -> ProviderReply:
        content = ""
        stop_reason = None
        if response.choices:
            choice = response.choices[0]
            content = choice.message.content or ""
            stop_reason = choice.finish_reason

        usage = TokenUsage()
        if response.usage:
            usage.input_tokens = response.usage.prompt_tokens or 0
            usage.output_tokens = response.usage.completion_tokens or 0

        return ProviderReply(
            content=content,
            model=response.model or model,
            usage=usage,
            stop_reason=stop_reason,
        )
