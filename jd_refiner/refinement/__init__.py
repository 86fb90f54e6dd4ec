"""
Feedback-driven refinement of job-description packages.

A reviewer marks sections as satisfied or not and leaves free-text
feedback; the engine turns that into a single model call and reports
which of the requested sections actually changed.

Usage:
    from jd_refiner.refinement import RefinementEngine, RefinementConfig, RefinementRequest

    async with RefinementEngine(RefinementConfig()) as engine:
        result = await engine.refine(
            RefinementRequest(
                current_document=document,
                refinements={"skills": {"satisfied": False, "feedback": "mark Canva as good to have"}},
            )
        )
        print(result.summary)
"""

from .detector import build_summary, detect_changes
from .engine import RefinementEngine
from .errors import (
    AccessDeniedError,
    InvalidInputError,
    RefinementError,
    UpstreamEmptyResponseError,
    UpstreamError,
    UpstreamFailureError,
    UpstreamMalformedJsonError,
    UpstreamTimeoutError,
)
from .gateway import CompletionGateway, CompletionResult
from .history import RefinementHistory, RefinementHistoryEntry
from .intents import DerivedAction, FeedbackIntent, classify_feedback
from .models import (
    ChangeRecord,
    ChatMessage,
    FeedbackEntry,
    FeedbackLedger,
    RefinementConfig,
    RefinementPolicy,
    RefinementRequest,
    RefinementResult,
    RefinementState,
)
from .prompts import CompiledPrompt, compile_prompt
from .sections import SECTION_PATHS, resolve_section_paths, reviewable_sections
from .service import AnalysisRefinementService, SavedRefinement

__all__ = [
    # Core
    "RefinementEngine",
    "RefinementConfig",
    "RefinementPolicy",
    "RefinementState",
    # Request/Response
    "RefinementRequest",
    "RefinementResult",
    "FeedbackEntry",
    "FeedbackLedger",
    "ChatMessage",
    "ChangeRecord",
    # Pipeline stages
    "compile_prompt",
    "CompiledPrompt",
    "classify_feedback",
    "DerivedAction",
    "FeedbackIntent",
    "CompletionGateway",
    "CompletionResult",
    "detect_changes",
    "build_summary",
    "SECTION_PATHS",
    "resolve_section_paths",
    "reviewable_sections",
    # Saved analyses
    "AnalysisRefinementService",
    "SavedRefinement",
    # History
    "RefinementHistory",
    "RefinementHistoryEntry",
    # Errors
    "RefinementError",
    "InvalidInputError",
    "AccessDeniedError",
    "UpstreamError",
    "UpstreamEmptyResponseError",
    "UpstreamMalformedJsonError",
    "UpstreamFailureError",
    "UpstreamTimeoutError",
]
