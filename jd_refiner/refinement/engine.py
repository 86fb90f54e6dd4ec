"""Refinement orchestrator: validate, compile, complete, diff, respond."""

import asyncio
import logging
import time
import uuid
from typing import Any, Optional

from pydantic import ValidationError

from jd_refiner.llm.providers.base import LLMProvider

from .detector import build_summary, detect_changes
from .errors import (
    InvalidInputError,
    RefinementError,
    UpstreamTimeoutError,
)
from .gateway import CompletionGateway
from .history import RefinementHistory
from .models import (
    RefinementConfig,
    RefinementPolicy,
    RefinementRequest,
    RefinementResult,
    RefinementState,
)
from .prompts import compile_prompt

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields: currentJD and refinements"
NO_FEEDBACK_MESSAGE = (
    "Please mark at least one section as not satisfied and provide feedback before submitting."
)


def terminal_state(error: RefinementError) -> RefinementState:
    """The failure state a request ends in for a given error."""
    if isinstance(error, InvalidInputError):
        return RefinementState.REJECTED_INVALID_INPUT
    return RefinementState.UPSTREAM_ERROR


class _Trace:
    """Per-request state log."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.states: list[RefinementState] = []

    def enter(self, state: RefinementState) -> None:
        self.states.append(state)
        logger.debug(f"[{self.request_id}] -> {state.value}")


class RefinementEngine:
    """
    Refines job-description documents from per-section reviewer feedback.

    Each call is a single pass with no state kept between requests: the
    input document is never modified, and on any failure no document is
    returned at all.

    Usage:
        async with RefinementEngine(RefinementConfig()) as engine:
            result = await engine.refine(
                RefinementRequest(
                    current_document=document,
                    refinements={"tools": {"satisfied": False, "feedback": "remove Canva"}},
                )
            )
            print(result.summary)

        # Tests and embedders can inject the provider or the gateway
        engine = RefinementEngine(config, gateway=stub_gateway)
    """

    def __init__(
        self,
        config: Optional[RefinementConfig] = None,
        provider: Optional[LLMProvider] = None,
        gateway: Optional[CompletionGateway] = None,
    ):
        self.config = config or RefinementConfig()
        self._provider = provider
        self._gateway = gateway
        self._owns_provider = False

    async def __aenter__(self) -> "RefinementEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Create and start the provider unless a gateway or provider was injected."""
        if self._gateway is not None:
            return

        if self._provider is None:
            self._provider = self.config.llm.create_provider(max_retries=0)
            self._owns_provider = True

        if not self._provider.is_started:
            await self._provider.start()

        self._gateway = CompletionGateway(
            self._provider,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
        logger.info(
            f"RefinementEngine initialized with {self._provider.provider_type.value} provider"
        )

    async def stop(self) -> None:
        if self._owns_provider and self._provider:
            await self._provider.stop()
            self._provider = None
            self._gateway = None
            self._owns_provider = False
        logger.info("RefinementEngine stopped")

    def _ensure_gateway(self) -> CompletionGateway:
        if self._gateway is None:
            raise RuntimeError(
                "Engine not started. Use 'async with RefinementEngine()' or call start()."
            )
        return self._gateway

    async def refine(
        self,
        request: RefinementRequest,
        policy: Optional[RefinementPolicy] = None,
        history: Optional[RefinementHistory] = None,
    ) -> RefinementResult:
        """
        Run one refinement request through the pipeline.

        Args:
            request: Document, feedback ledger and optional chat history
            policy: Overrides the configured policy for this call
            history: Audit trail to draw context from and record into

        Returns:
            RefinementResult with the updated document and detected changes

        Raises:
            InvalidInputError: Missing document/ledger, or nothing actionable under STRICT_GATE
            UpstreamError: The completion failed, timed out or returned unusable output
        """
        policy = policy or self.config.policy
        trace = _Trace(uuid.uuid4().hex[:8])
        start_time = time.time()

        trace.enter(RefinementState.RECEIVED)
        try:
            return await self._run(request, policy, history, trace, start_time)
        except RefinementError as e:
            trace.enter(terminal_state(e))
            logger.warning(f"Refinement failed ({type(e).__name__}): {e}")
            raise

    async def _run(
        self,
        request: RefinementRequest,
        policy: RefinementPolicy,
        history: Optional[RefinementHistory],
        trace: _Trace,
        start_time: float,
    ) -> RefinementResult:
        document = request.current_document
        ledger = request.refinements
        if document is None or ledger is None:
            raise InvalidInputError(MISSING_FIELDS_MESSAGE)

        if policy == RefinementPolicy.STRICT_GATE and not ledger.has_actionable_feedback():
            raise InvalidInputError(NO_FEEDBACK_MESSAGE)
        trace.enter(RefinementState.VALIDATED)

        chat_history = request.chat_history
        if not chat_history and history is not None:
            chat_history = history.get_context_for_llm()

        prompt = compile_prompt(
            document,
            ledger,
            history=chat_history,
            history_turns=self.config.history_turns,
        )
        trace.enter(RefinementState.PROMPT_COMPILED)
        if prompt.is_echo:
            logger.info("No actionable feedback; requesting an unchanged echo")

        gateway = self._ensure_gateway()
        trace.enter(RefinementState.AWAITING_COMPLETION)
        timeout = self.config.request_timeout_seconds
        try:
            completion = await asyncio.wait_for(
                gateway.complete_document(prompt), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(
                details=f"No response from completion service within {timeout:g}s"
            ) from e
        trace.enter(RefinementState.PARSED_RESULT)

        changes = detect_changes(
            document,
            completion.document,
            ledger,
            ignore_order=self.config.ignore_list_order,
        )
        trace.enter(RefinementState.DIFFED)

        result = RefinementResult(
            updated_document=completion.document,
            changed_sections=changes,
            summary=build_summary(changes),
            tokens_used=completion.tokens_used,
            cost_usd=completion.cost_usd,
            latency_ms=(time.time() - start_time) * 1000,
            policy=policy,
        )

        if history is not None and ledger.has_actionable_feedback():
            history.add(ledger, document, result)

        trace.enter(RefinementState.RESPONDED)
        result.states = list(trace.states)

        logger.info(
            f"Refinement complete: {len(changes)} changed sections, "
            f"{result.tokens_used} tokens, ${result.cost_usd:.4f}"
        )
        return result

    async def handle_payload(
        self,
        payload: Any,
        policy: Optional[RefinementPolicy] = None,
    ) -> tuple[int, dict[str, Any]]:
        """
        Wire-level entry point: JSON body in, (status code, JSON body) out.

        Every failure becomes the ``{"success": false, ...}`` envelope.
        """
        try:
            if not isinstance(payload, dict):
                raise InvalidInputError(
                    MISSING_FIELDS_MESSAGE, details="Request body must be a JSON object"
                )
            try:
                request = RefinementRequest.model_validate(payload)
            except ValidationError as e:
                raise InvalidInputError(details=_describe_validation_error(e)) from e

            result = await self.refine(request, policy=policy)
            return 200, result.to_payload()

        except RefinementError as e:
            return e.status_code, e.to_payload()
        except Exception as e:
            logger.exception(f"Unexpected refinement error: {e}")
            error = RefinementError(details=str(e) or type(e).__name__)
            return error.status_code, error.to_payload()


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "; ".join(parts)
