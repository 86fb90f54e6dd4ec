"""Google Gemini provider."""

import asyncio
import logging
from typing import Any, Optional

from google.api_core import exceptions as google_exceptions

from .base import LLMProvider, ProviderReply, ProviderType, TokenUsage

logger = logging.getLogger(__name__)

# Gemini model pricing per million tokens
GEMINI_PRICING = {
    "gemini-2.5-flash": {"input": 0.15, "output": 0.60},
    "gemini-2.5-flash-lite": {"input": 0.075, "output": 0.30},
    "gemini-2.5-pro": {"input": 1.25, "output": 5.00},
    "gemini-2.0-flash": {"input": 0.10, "output": 0.40},
}


class GeminiProvider(LLMProvider):
    """
    Google Gemini provider.

    The SDK is synchronous, so calls run in a worker thread. System prompts
    become ``system_instruction``; ``json_mode`` maps to
    ``response_mime_type="application/json"``. Chat messages are flattened
    into one labelled transcript.
    """

    api_key_env_vars = ("GOOGLE_API_KEY", "GEMINI_API_KEY")
    pricing = GEMINI_PRICING
    default_pricing = GEMINI_PRICING["gemini-2.5-flash"]

    def __init__(
        self,
        default_model: str = "gemini-2.5-flash",
        **kwargs: Any,
    ):
        super().__init__(default_model=default_model, **kwargs)

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GEMINI

    @property
    def retryable_errors(self) -> tuple[type[BaseException], ...]:
        return (
            google_exceptions.ResourceExhausted,
            google_exceptions.ServiceUnavailable,
            google_exceptions.InternalServerError,
        )

    def _create_client(self, api_key: str) -> Any:
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        return genai

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
        system_instruction = system
        if messages:
            lines = []
            for message in messages:
                role = message.get("role", "user")
                if role == "system":
                    system_instruction = message.get("content", "")
                else:
                    author = "Assistant" if role == "assistant" else "User"
                    lines.append(f"{author}: {message.get('content', '')}")
            prompt = "\n\n".join(lines)

        generation_config: dict[str, Any] = {
            "max_output_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            generation_config["response_mime_type"] = "application/json"
        generation_config.update(kwargs)

        return {
            "model": model.removeprefix("models/"),
            "system_instruction": system_instruction,
            "prompt": prompt,
            "generation_config": generation_config,
        }

    async def _send(self, client: Any, request: dict[str, Any]) -> Any:
        model = client.GenerativeModel(
            request["model"], system_instruction=request["system_instruction"]
        )
        return await asyncio.to_thread(
            model.generate_content,
            request["prompt"],
            generation_config=request["generation_config"],
            request_options={"timeout": self.timeout_seconds},
        )

    def _read_reply(self, response: Any, model: str) -> ProviderReply:
        try:
            content = response.text
        except ValueError:
            # Blocked or empty candidates
            logger.warning(f"Gemini returned no text: {response.prompt_feedback}")
            content = ""

        usage = TokenUsage()
        metadata = getattr(response, "usage_metadata", None)
        if metadata:
            usage.input_tokens = getattr(metadata, "prompt_token_count", 0) or 0
            usage.output_tokens = getattr(metadata, "candidates_token_count", 0) or 0

        stop_reason = None
        if response.candidates:
            stop_reason = str(getattr(response.candidates[0], "finish_reason", "")) or None

        return ProviderReply(
            content=content,
            model=model.removeprefix("models/"),
            usage=usage,
            stop_reason=stop_reason,
        )
