"""Tests for the completion gateway."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from jd_refiner.llm.providers.base import LLMResponse, TokenUsage
from jd_refiner.refinement import (
    CompiledPrompt,
    CompletionGateway,
    UpstreamEmptyResponseError,
    UpstreamFailureError,
    UpstreamMalformedJsonError,
    UpstreamTimeoutError,
)

PROMPT = CompiledPrompt(system="system", user="user", actionable_keys=("tools",))


def _provider(content: str = "", error: Exception = None) -> MagicMock:
    provider = MagicMock()
    if error is not None:
        provider.complete = AsyncMock(side_effect=error)
    else:
        provider.complete = AsyncMock(
            return_value=LLMResponse(
                content=content,
                model="test-model",
                usage=TokenUsage(input_tokens=100, output_tokens=50),
                cost_usd=0.002,
            )
        )
    return provider


class TestCompleteDocument:
    """Tests for CompletionGateway.complete_document."""

    @pytest.mark.asyncio
    async def test_parses_json_object(self, document):
        gateway = CompletionGateway(_provider(json.dumps(document)), max_tokens=2000)

        result = await gateway.complete_document(PROMPT)

        assert result.document == document
        assert result.tokens_used == 150
        assert result.cost_usd == 0.002
        assert result.model == "test-model"

    @pytest.mark.asyncio
    async def test_requests_json_mode(self):
        provider = _provider('{"a": 1}')
        gateway = CompletionGateway(provider, max_tokens=2000, temperature=0.3)

        await gateway.complete_document(PROMPT)

        kwargs = provider.complete.call_args.kwargs
        assert kwargs["json_mode"] is True
        assert kwargs["system"] == "system"
        assert kwargs["prompt"] == "user"
        assert kwargs["max_tokens"] == 2000
        assert kwargs["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_fenced_json_is_accepted(self):
        gateway = CompletionGateway(_provider('```json\n{"a": 1}\n```'))
        result = await gateway.complete_document(PROMPT)
        assert result.document == {"a": 1}

    @pytest.mark.asyncio
    async def test_empty_reply(self):
        gateway = CompletionGateway(_provider("   "))
        with pytest.raises(UpstreamEmptyResponseError) as exc_info:
            await gateway.complete_document(PROMPT)
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_malformed_reply(self):
        gateway = CompletionGateway(_provider("Sorry, I can't do that."))
        with pytest.raises(UpstreamMalformedJsonError) as exc_info:
            await gateway.complete_document(PROMPT)
        assert exc_info.value.raw_content == "Sorry, I can't do that."

    @pytest.mark.asyncio
    async def test_non_object_reply(self):
        gateway = CompletionGateway(_provider("[1, 2, 3]"))
        with pytest.raises(UpstreamMalformedJsonError):
            await gateway.complete_document(PROMPT)

    @pytest.mark.asyncio
    async def test_provider_timeout(self):
        gateway = CompletionGateway(_provider(error=asyncio.TimeoutError()))
        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await gateway.complete_document(PROMPT)
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_provider_failure(self):
        gateway = CompletionGateway(_provider(error=ConnectionError("connection reset")))
        with pytest.raises(UpstreamFailureError) as exc_info:
            await gateway.complete_document(PROMPT)

        payload = exc_info.value.to_payload()
        assert payload == {
            "success": False,
            "error": "Failed to refine job description",
            "details": "connection reset",
        }

    @pytest.mark.asyncio
    async def test_single_attempt(self):
        provider = _provider(error=RuntimeError("boom"))
        gateway = CompletionGateway(provider)

        with pytest.raises(UpstreamFailureError):
            await gateway.complete_document(PROMPT)
        assert provider.complete.await_count == 1
