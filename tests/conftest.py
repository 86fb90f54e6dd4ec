"""Shared fixtures: a sample job-description package and a scriptable gateway."""

import asyncio
import copy
from typing import Any, Callable, Optional

import pytest

from jd_refiner.refinement import (
    CompiledPrompt,
    CompletionResult,
    RefinementConfig,
    RefinementEngine,
    RefinementPolicy,
)


SAMPLE_DOCUMENT: dict[str, Any] = {
    "what_you_told_us": "Boutique agency needs help running client funnels and social content.",
    "roles": [
        {
            "title": "Marketing Operations Assistant",
            "family": "Marketing",
            "service": "Dedicated",
            "hours_per_week": 20,
            "client_facing": True,
            "purpose": "Keep client funnels and content calendars running.",
            "core_outcomes": [
                "All client funnels live and tracked within 30 days",
                "Weekly content calendar delivered every Friday",
            ],
            "responsibilities": [
                "Build and maintain funnels in GHL",
                "Design social graphics in Canva",
                "Run ETL exports for weekly reporting",
            ],
            "skills": ["GHL", "Canva"],
            "tools": ["GHL", "Canva", "Zapier"],
            "kpis": ["Funnel uptime 99%", "Content delivered on time"],
            "personality": ["Detail-oriented", "Proactive"],
            "reporting_to": "Agency Owner",
            "sample_week": {
                "Mon": "Funnel QA and fixes",
                "Tue": "Canva graphics for client posts",
                "Wed": "Zapier automations",
                "Thu": "ETL reporting export",
                "Fri": "Content calendar hand-off",
            },
            "overlap_requirements": "4 hours overlap with US Eastern",
            "communication_norms": "Daily Slack check-in, weekly Loom update",
        }
    ],
    "split_table": [
        {
            "role": "Marketing Operations Assistant",
            "purpose": "Funnels and content",
            "core_outcomes": ["Funnels live", "Calendar delivered"],
            "hrs": 20,
            "service": "Dedicated",
        }
    ],
    "service_recommendation": {
        "best_fit": "Dedicated part-time assistant",
        "why": "Steady weekly workload across two skill areas.",
        "cost_framing": "Roughly the cost of one freelancer at half the hours.",
        "next_steps": ["Confirm hours", "Schedule kickoff"],
    },
    "onboarding_2w": {
        "week_1": ["Tool access", "Shadow funnel builds"],
        "week_2": ["Own the content calendar"],
    },
    "risks": ["Client approvals may slow delivery"],
    "assumptions": ["Existing GHL account is available"],
}


def sample_document() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_DOCUMENT)


class StubGateway:
    """
    Stands in for CompletionGateway.

    ``transform`` receives a deep copy of the document shown in the prompt's
    request and returns the "model output". Defaults to an unchanged echo.
    """

    def __init__(
        self,
        transform: Optional[Callable[[dict[str, Any]], dict[str, Any]]] = None,
        document: Optional[dict[str, Any]] = None,
        tokens_used: int = 1234,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.transform = transform or (lambda doc: doc)
        self.document = document if document is not None else sample_document()
        self.tokens_used = tokens_used
        self.delay = delay
        self.error = error
        self.prompts: list[CompiledPrompt] = []

    async def complete_document(self, prompt: CompiledPrompt) -> CompletionResult:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return CompletionResult(
            document=self.transform(copy.deepcopy(self.document)),
            tokens_used=self.tokens_used,
        )


@pytest.fixture
def document() -> dict[str, Any]:
    """A fresh copy of the sample package."""
    return sample_document()


@pytest.fixture
def make_engine():
    """Build an engine around a StubGateway; returns (engine, gateway)."""

    def _make(
        transform: Optional[Callable[[dict[str, Any]], dict[str, Any]]] = None,
        policy: RefinementPolicy = RefinementPolicy.LENIENT_ECHO,
        **gateway_kwargs: Any,
    ) -> tuple[RefinementEngine, StubGateway]:
        timeout = gateway_kwargs.pop("timeout", 90.0)
        gateway = StubGateway(transform, **gateway_kwargs)
        config = RefinementConfig(policy=policy, request_timeout_seconds=timeout)
        return RefinementEngine(config, gateway=gateway), gateway

    return _make
