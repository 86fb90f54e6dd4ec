"""Tests for the refinement engine."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from jd_refiner.llm import LLMConfig
from jd_refiner.llm.providers.base import LLMResponse, TokenUsage
from jd_refiner.refinement import (
    InvalidInputError,
    RefinementConfig,
    RefinementEngine,
    RefinementHistory,
    RefinementPolicy,
    RefinementRequest,
    RefinementState,
    UpstreamFailureError,
    UpstreamTimeoutError,
)
from jd_refiner.refinement.engine import MISSING_FIELDS_MESSAGE, NO_FEEDBACK_MESSAGE


def _nice_to_have(doc):
    doc["roles"][0]["skills"] = ["GHL", "Canva (nice to have)"]
    return doc


NICE_TO_HAVE_LEDGER = {
    "skills-tools": {"satisfied": False, "feedback": "Make Canva a nice to have"},
    "kpis": {"satisfied": True, "feedback": ""},
}


class TestLenientEcho:
    """Requests with nothing actionable under the lenient policy."""

    @pytest.mark.asyncio
    async def test_empty_ledger_echoes_document(self, make_engine, document):
        engine, gateway = make_engine()

        result = await engine.refine(
            RefinementRequest(current_document=document, refinements={})
        )

        assert result.updated_document == document
        assert result.changed_sections == []
        assert result.summary == "No changes were made to the job description."
        assert gateway.prompts[0].is_echo

    @pytest.mark.asyncio
    async def test_all_satisfied_ledger(self, make_engine, document):
        engine, _ = make_engine()

        result = await engine.refine(
            RefinementRequest(
                current_document=document,
                refinements={
                    "role": {"satisfied": True, "feedback": ""},
                    "tools": {"satisfied": False, "feedback": "   "},
                },
            )
        )
        assert not result.has_changes()


class TestStrictGate:
    """Requests with nothing actionable under the strict policy."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "ledger",
        [{}, {"role": {"satisfied": True, "feedback": ""}}],
    )
    async def test_rejected_before_completion(self, make_engine, document, ledger):
        engine, gateway = make_engine(policy=RefinementPolicy.STRICT_GATE)

        with pytest.raises(InvalidInputError) as exc_info:
            await engine.refine(RefinementRequest(current_document=document, refinements=ledger))

        assert exc_info.value.message == NO_FEEDBACK_MESSAGE
        assert gateway.prompts == []

    @pytest.mark.asyncio
    async def test_policy_override_per_call(self, make_engine, document):
        engine, _ = make_engine()

        with pytest.raises(InvalidInputError):
            await engine.refine(
                RefinementRequest(current_document=document, refinements={}),
                policy=RefinementPolicy.STRICT_GATE,
            )


class TestRefine:
    """Tests for the full pipeline."""

    @pytest.mark.asyncio
    async def test_nice_to_have(self, make_engine, document):
        engine, _ = make_engine(_nice_to_have)

        result = await engine.refine(
            RefinementRequest(current_document=document, refinements=NICE_TO_HAVE_LEDGER)
        )

        assert result.updated_document["roles"][0]["skills"] == ["GHL", "Canva (nice to have)"]
        assert [(c.section, c.refinement_key) for c in result.changed_sections] == [
            ("roles[0].skills", "skills-tools")
        ]
        assert "Make Canva a nice to have" in result.summary
        assert result.summary.startswith("I've updated 1 section")
        assert result.tokens_used == 1234

    @pytest.mark.asyncio
    async def test_good_to_have_on_skills_key(self, make_engine, document):
        engine, gateway = make_engine(_nice_to_have)

        result = await engine.refine(
            RefinementRequest(
                current_document=document,
                refinements={
                    "skills": {"satisfied": False, "feedback": "mark Canva as good to have"}
                },
            )
        )

        assert [c.section for c in result.changed_sections] == ["roles[0].skills"]
        assert "mark Canva as good to have" in result.summary
        assert "optional" in gateway.prompts[0].user.lower()

    @pytest.mark.asyncio
    async def test_input_document_untouched(self, make_engine, document):
        engine, _ = make_engine(_nice_to_have)
        before = json.dumps(document, sort_keys=True)

        await engine.refine(
            RefinementRequest(current_document=document, refinements=NICE_TO_HAVE_LEDGER)
        )
        assert json.dumps(document, sort_keys=True) == before

    @pytest.mark.asyncio
    async def test_idempotent_rerun(self, make_engine, document):
        """Feeding the refined document back with the same feedback changes nothing."""
        engine, gateway = make_engine(_nice_to_have)
        first = await engine.refine(
            RefinementRequest(current_document=document, refinements=NICE_TO_HAVE_LEDGER)
        )

        gateway.document = first.updated_document
        second = await engine.refine(
            RefinementRequest(
                current_document=first.updated_document, refinements=NICE_TO_HAVE_LEDGER
            )
        )

        assert second.updated_document == first.updated_document
        assert second.changed_sections == []

    @pytest.mark.asyncio
    async def test_state_trace(self, make_engine, document):
        engine, _ = make_engine()
        result = await engine.refine(RefinementRequest(current_document=document, refinements={}))

        assert result.states == [
            RefinementState.RECEIVED,
            RefinementState.VALIDATED,
            RefinementState.PROMPT_COMPILED,
            RefinementState.AWAITING_COMPLETION,
            RefinementState.PARSED_RESULT,
            RefinementState.DIFFED,
            RefinementState.RESPONDED,
        ]

    @pytest.mark.asyncio
    async def test_chat_history_reaches_prompt(self, make_engine, document):
        engine, gateway = make_engine()
        await engine.refine(
            RefinementRequest(
                current_document=document,
                refinements=NICE_TO_HAVE_LEDGER,
                chat_history=[
                    {"role": "user", "content": "Shorter please"},
                    {"role": "assistant", "content": "Done"},
                ],
            )
        )
        assert "User: Shorter please" in gateway.prompts[0].user

    @pytest.mark.asyncio
    async def test_missing_document(self, make_engine):
        engine, _ = make_engine()
        with pytest.raises(InvalidInputError) as exc_info:
            await engine.refine(RefinementRequest(refinements={}))
        assert exc_info.value.message == MISSING_FIELDS_MESSAGE

    @pytest.mark.asyncio
    async def test_timeout(self, make_engine, document):
        engine, _ = make_engine(timeout=0.05, delay=1.0)

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await engine.refine(
                RefinementRequest(current_document=document, refinements=NICE_TO_HAVE_LEDGER)
            )
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_not_started(self, document):
        engine = RefinementEngine(RefinementConfig())
        with pytest.raises(RuntimeError, match="not started"):
            await engine.refine(RefinementRequest(current_document=document, refinements={}))


class TestHistoryRecording:
    """Tests for recording refinements into a RefinementHistory."""

    @pytest.mark.asyncio
    async def test_actionable_refinement_recorded(self, make_engine, document):
        engine, _ = make_engine(_nice_to_have)
        history = RefinementHistory.create("abc")

        await engine.refine(
            RefinementRequest(current_document=document, refinements=NICE_TO_HAVE_LEDGER),
            history=history,
        )

        assert len(history.entries) == 1
        entry = history.entries[0]
        assert list(entry.feedback) == ["skills-tools"]
        assert entry.document_before == document
        assert entry.document_after["roles"][0]["skills"][1] == "Canva (nice to have)"

    @pytest.mark.asyncio
    async def test_echo_not_recorded(self, make_engine, document):
        engine, _ = make_engine()
        history = RefinementHistory.create("abc")

        await engine.refine(
            RefinementRequest(current_document=document, refinements={}), history=history
        )
        assert history.entries == []

    @pytest.mark.asyncio
    async def test_history_supplies_context(self, make_engine, document):
        engine, gateway = make_engine(_nice_to_have)
        history = RefinementHistory.create("abc")
        request = RefinementRequest(current_document=document, refinements=NICE_TO_HAVE_LEDGER)

        await engine.refine(request, history=history)
        await engine.refine(request, history=history)

        assert "User: skills-tools: Make Canva a nice to have" in gateway.prompts[1].user


class TestHandlePayload:
    """Tests for the wire-level entry point."""

    @pytest.mark.asyncio
    async def test_success_envelope(self, make_engine, document):
        engine, _ = make_engine(_nice_to_have)

        status, body = await engine.handle_payload(
            {"currentJD": document, "refinements": NICE_TO_HAVE_LEDGER}
        )

        assert status == 200
        assert body["success"] is True
        data = body["data"]
        assert data["changedSections"] == [
            {
                "section": "roles[0].skills",
                "refinementKey": "skills-tools",
                "feedback": "Make Canva a nice to have",
            }
        ]
        assert data["tokensUsed"] == 1234
        assert data["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{}, {"refinements": {}}, {"currentJD": {"roles": []}}, None, ["x"]],
    )
    async def test_missing_fields(self, make_engine, payload):
        engine, gateway = make_engine()

        status, body = await engine.handle_payload(payload)

        assert status == 400
        assert body["success"] is False
        assert body["error"] == MISSING_FIELDS_MESSAGE
        assert gateway.prompts == []

    @pytest.mark.asyncio
    async def test_strict_rejection(self, make_engine, document):
        engine, _ = make_engine()

        status, body = await engine.handle_payload(
            {"currentJD": document, "refinements": {}}, policy=RefinementPolicy.STRICT_GATE
        )
        assert (status, body["error"]) == (400, NO_FEEDBACK_MESSAGE)

    @pytest.mark.asyncio
    async def test_timeout_envelope(self, make_engine, document):
        engine, _ = make_engine(timeout=0.05, delay=1.0)

        status, body = await engine.handle_payload(
            {"currentJD": document, "refinements": NICE_TO_HAVE_LEDGER}
        )

        assert status == 504
        assert body["success"] is False
        assert body["error"] == "Failed to refine job description"
        assert "0.05s" in body["details"]

    @pytest.mark.asyncio
    async def test_upstream_failure_envelope(self, make_engine, document):
        engine, _ = make_engine(error=UpstreamFailureError(details="rate limited"))

        status, body = await engine.handle_payload(
            {"currentJD": document, "refinements": NICE_TO_HAVE_LEDGER}
        )
        assert status == 502
        assert body == {
            "success": False,
            "error": "Failed to refine job description",
            "details": "rate limited",
        }

    @pytest.mark.asyncio
    async def test_unexpected_error_envelope(self, make_engine, document):
        engine, _ = make_engine(error=KeyError("roles"))

        status, body = await engine.handle_payload(
            {"currentJD": document, "refinements": NICE_TO_HAVE_LEDGER}
        )
        assert status == 500
        assert body["error"] == "Failed to refine job description"


class TestProviderLifecycle:
    """Tests for starting the engine around an injected provider."""

    @pytest.mark.asyncio
    async def test_injected_provider(self, document):
        provider = MagicMock()
        provider.is_started = False
        provider.start = AsyncMock()
        provider.stop = AsyncMock()
        provider.complete = AsyncMock(
            return_value=LLMResponse(
                content=json.dumps(document),
                model="gpt-4o-mini",
                usage=TokenUsage(input_tokens=10, output_tokens=20),
            )
        )

        async with RefinementEngine(RefinementConfig(), provider=provider) as engine:
            result = await engine.refine(
                RefinementRequest(current_document=document, refinements={})
            )

        provider.start.assert_awaited_once()
        # Injected providers are owned by the caller
        provider.stop.assert_not_awaited()
        assert result.updated_document == document
        assert result.tokens_used == 30

    @pytest.mark.asyncio
    async def test_rate_limited_request_is_attempted_once(self, monkeypatch, document):
        create = AsyncMock(
            side_effect=openai.RateLimitError(
                message="rate limited",
                response=httpx.Response(
                    429,
                    request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
                ),
                body=None,
            )
        )
        client = MagicMock()
        client.chat.completions.create = create
        client.close = AsyncMock()
        monkeypatch.setattr(openai, "AsyncOpenAI", MagicMock(return_value=client))

        # Configured retries do not apply to refinement requests
        config = RefinementConfig(llm=LLMConfig(api_key="sk-test", max_retries=3))
        async with RefinementEngine(config) as engine:
            with pytest.raises(UpstreamFailureError):
                await engine.refine(
                    RefinementRequest(current_document=document, refinements=NICE_TO_HAVE_LEDGER)
                )

        assert create.await_count == 1
        client.close.assert_awaited_once()
