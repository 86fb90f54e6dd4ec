"""Data models for the refinement pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    field_validator,
)

from jd_refiner.llm import LLMConfig


class RefinementPolicy(str, Enum):
    """What to do when a request carries no actionable feedback."""

    LENIENT_ECHO = "lenient-echo"  # Run the pipeline; the model echoes the document
    STRICT_GATE = "strict-gate"  # Reject before any prompt is compiled


class RefinementState(str, Enum):
    """Per-request pipeline states."""

    RECEIVED = "received"
    VALIDATED = "validated"
    PROMPT_COMPILED = "prompt_compiled"
    AWAITING_COMPLETION = "awaiting_completion"
    PARSED_RESULT = "parsed_result"
    DIFFED = "diffed"
    RESPONDED = "responded"
    # Terminal failures
    REJECTED_INVALID_INPUT = "rejected_invalid_input"
    UPSTREAM_ERROR = "upstream_error"


# ============================================================================
# Feedback Ledger
# ============================================================================


class FeedbackEntry(BaseModel):
    """A reviewer's judgement of one section."""

    satisfied: Optional[bool] = Field(
        default=None,
        description="True when satisfied, False when changes are wanted, None when unset",
    )
    feedback: str = Field(default="", description="Free-text feedback")

    @field_validator("feedback", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def is_actionable(self) -> bool:
        """Marked unsatisfied and carrying non-blank feedback."""
        return self.satisfied is False and bool(self.feedback.strip())


class FeedbackLedger(RootModel[dict[str, FeedbackEntry]]):
    """
    Refinement key -> FeedbackEntry, in the order the caller supplied them.

    Later rendering numbers items in this order, so iteration order matters.
    """

    root: dict[str, FeedbackEntry] = Field(default_factory=dict)

    def __iter__(self):
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __getitem__(self, key: str) -> FeedbackEntry:
        return self.root[key]

    def items(self):
        return self.root.items()

    def unsatisfied_entries(self) -> list[tuple[str, FeedbackEntry]]:
        """Actionable entries (satisfied is exactly False, feedback non-blank)."""
        return [(key, entry) for key, entry in self.root.items() if entry.is_actionable]

    def satisfied_keys(self) -> list[str]:
        return [key for key, entry in self.root.items() if entry.satisfied is True]

    def has_actionable_feedback(self) -> bool:
        return bool(self.unsatisfied_entries())


class ChatMessage(BaseModel):
    """One turn of the conversation that preceded this request."""

    role: Literal["user", "assistant"]
    content: str


# ============================================================================
# Request / Response
# ============================================================================


class RefinementRequest(BaseModel):
    """A request to refine a job-description document."""

    model_config = ConfigDict(populate_by_name=True)

    current_document: Optional[dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("currentDocument", "currentJD", "current_document"),
        description="The document as the caller currently holds it",
    )
    refinements: Optional[FeedbackLedger] = Field(
        default=None,
        validation_alias=AliasChoices("refinements", "feedback_ledger"),
        description="Per-section judgements",
    )
    chat_history: list[ChatMessage] = Field(
        default_factory=list,
        validation_alias=AliasChoices("chatHistory", "chat_history"),
    )

    @field_validator("chat_history", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return [] if value is None else value


class ChangeRecord(BaseModel):
    """A section that actually differs after refinement."""

    model_config = ConfigDict(populate_by_name=True)

    section: str = Field(description="Resolved section path")
    refinement_key: str = Field(
        validation_alias=AliasChoices("refinementKey", "refinement_key"),
        serialization_alias="refinementKey",
    )
    feedback: str = ""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class RefinementResult(BaseModel):
    """Successful outcome of a refinement request."""

    updated_document: dict[str, Any]
    changed_sections: list[ChangeRecord] = Field(default_factory=list)
    summary: str
    timestamp: datetime = Field(default_factory=_utc_now)

    tokens_used: int = 0
    cost_usd: float = 0.0
    latency_ms: float = 0.0
    policy: RefinementPolicy = RefinementPolicy.LENIENT_ECHO
    states: list[RefinementState] = Field(
        default_factory=list,
        description="Pipeline states passed through, in order",
    )

    def has_changes(self) -> bool:
        return bool(self.changed_sections)

    def to_payload(self) -> dict[str, Any]:
        """The success envelope returned to API callers."""
        return {
            "success": True,
            "data": {
                "updatedJD": self.updated_document,
                "changedSections": [
                    change.model_dump(by_alias=True) for change in self.changed_sections
                ],
                "summary": self.summary,
                "timestamp": format_timestamp(self.timestamp),
                "tokensUsed": self.tokens_used,
            },
        }


# ============================================================================
# Configuration
# ============================================================================


class RefinementConfig(BaseModel):
    """Configuration for the refinement engine."""

    llm: LLMConfig = Field(default_factory=LLMConfig)

    policy: RefinementPolicy = Field(
        default=RefinementPolicy.LENIENT_ECHO,
        description="Behaviour when no section is marked unsatisfied with feedback",
    )

    # Generation settings
    max_tokens: int = Field(default=4000, ge=256, le=32000)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # Overall bound on the completion wait
    request_timeout_seconds: float = Field(default=90.0, gt=0.0, le=600.0)

    history_turns: int = Field(
        default=6,
        ge=0,
        le=50,
        description="Most recent chat turns included as prompt context",
    )
    ignore_list_order: bool = Field(
        default=True,
        description="Treat a reordered list as unchanged when detecting changes",
    )
