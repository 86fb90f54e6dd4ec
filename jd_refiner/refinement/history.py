"""Audit trail of refinements applied to one job-description package."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from .models import ChangeRecord, ChatMessage, FeedbackEntry, FeedbackLedger, RefinementResult

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RefinementHistoryEntry(BaseModel):
    """One applied refinement: what was asked, what changed, and both document states."""

    feedback: dict[str, FeedbackEntry] = Field(
        default_factory=dict,
        description="Actionable ledger entries that drove this refinement",
    )
    changed_sections: list[ChangeRecord] = Field(default_factory=list)
    summary: str = ""

    document_before: dict[str, Any]
    document_after: dict[str, Any]

    tokens_used: int = 0
    cost_usd: float = 0.0
    timestamp: datetime = Field(default_factory=_now)

    is_undone: bool = False

    def feedback_text(self) -> str:
        return "; ".join(f"{key}: {entry.feedback}" for key, entry in self.feedback.items())

    def to_summary(self) -> str:
        """One line for listings."""
        status = " (undone)" if self.is_undone else ""
        text = self.feedback_text() or "no feedback"
        if len(text) > 60:
            text = text[:57] + "..."
        return (
            f"[{self.timestamp.strftime('%Y-%m-%d %H:%M')}] \"{text}\" "
            f"({len(self.changed_sections)} changed){status}"
        )


class RefinementHistory(BaseModel):
    """
    Refinements of a single saved analysis, with undo/redo.

    Persisted as JSON next to the analysis it belongs to. ``current_index``
    is -1 for the original document and N after the (N+1)th refinement.
    """

    analysis_id: str
    title: str = ""

    entries: list[RefinementHistoryEntry] = Field(default_factory=list)
    current_index: int = -1

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    _file_path: Optional[Path] = None

    @classmethod
    def auto_history_path(cls, document_path: Path) -> Path:
        """``analysis.json`` -> ``analysis.history.json``."""
        if document_path.suffix == ".json":
            return document_path.with_suffix(".history.json")
        return Path(f"{document_path}.history.json")

    @classmethod
    def load(cls, path: Path) -> Optional["RefinementHistory"]:
        """Load a history file; None when it does not exist or cannot be read."""
        if not path.exists():
            logger.debug(f"No history file at {path}")
            return None

        try:
            history = cls.model_validate(json.loads(path.read_text()))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load history from {path}: {e}")
            return None

        history._file_path = path
        logger.info(f"Loaded refinement history with {len(history.entries)} entries")
        return history

    @classmethod
    def load_for_document(cls, document_path: Path) -> Optional["RefinementHistory"]:
        return cls.load(cls.auto_history_path(document_path))

    @classmethod
    def create(
        cls,
        analysis_id: str,
        title: str = "",
        document_path: Optional[Path] = None,
    ) -> "RefinementHistory":
        history = cls(analysis_id=analysis_id, title=title)
        if document_path:
            history._file_path = cls.auto_history_path(document_path)
        return history

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_path

    def save(self, path: Optional[Path] = None) -> Path:
        save_path = path or self._file_path
        if not save_path:
            raise ValueError("No path specified and no default path set")

        self.updated_at = _now()
        save_path.write_text(self.model_dump_json(indent=2))

        self._file_path = save_path
        logger.info(f"Saved refinement history to {save_path}")
        return save_path

    def add(
        self,
        ledger: FeedbackLedger,
        document_before: dict[str, Any],
        result: RefinementResult,
    ) -> RefinementHistoryEntry:
        """Record a successful refinement, discarding any undone entries after the current one."""
        if self.can_redo():
            self.entries = self.entries[: self.current_index + 1]

        entry = RefinementHistoryEntry(
            feedback=dict(ledger.unsatisfied_entries()),
            changed_sections=result.changed_sections,
            summary=result.summary,
            document_before=document_before,
            document_after=result.updated_document,
            tokens_used=result.tokens_used,
            cost_usd=result.cost_usd,
            timestamp=result.timestamp,
        )
        self.entries.append(entry)
        self.current_index = len(self.entries) - 1
        self.updated_at = _now()

        logger.debug(f"Added history entry: {entry.to_summary()}")
        return entry

    def can_undo(self) -> bool:
        return self.current_index >= 0

    def can_redo(self) -> bool:
        return self.current_index < len(self.entries) - 1

    def undo(self) -> Optional[dict[str, Any]]:
        """
        Step back one refinement.

        Returns:
            The document as it was before the undone refinement, or None
        """
        if not self.can_undo():
            logger.debug("Nothing to undo")
            return None

        entry = self.entries[self.current_index]
        entry.is_undone = True
        self.current_index -= 1
        self.updated_at = _now()

        logger.info(f"Undone: {entry.to_summary()}")
        return entry.document_before

    def redo(self) -> Optional[dict[str, Any]]:
        """
        Re-apply the next undone refinement.

        Returns:
            The document after the redone refinement, or None
        """
        if not self.can_redo():
            logger.debug("Nothing to redo")
            return None

        self.current_index += 1
        entry = self.entries[self.current_index]
        entry.is_undone = False
        self.updated_at = _now()

        logger.info(f"Redone: {entry.to_summary()}")
        return entry.document_after

    def get_current_document(self, original: dict[str, Any]) -> dict[str, Any]:
        if self.current_index < 0:
            return original
        return self.entries[self.current_index].document_after

    def get_context_for_llm(self, max_entries: int = 3) -> list[ChatMessage]:
        """
        Recent active refinements as conversation turns.

        Each entry becomes a user turn (the feedback) followed by an
        assistant turn (the summary), oldest first.
        """
        active = [entry for entry in self.entries if not entry.is_undone]
        messages: list[ChatMessage] = []
        for entry in active[-max_entries:] if max_entries > 0 else []:
            messages.append(ChatMessage(role="user", content=entry.feedback_text()))
            messages.append(ChatMessage(role="assistant", content=entry.summary))
        return messages

    def get_summary(self) -> dict:
        active_count = sum(1 for entry in self.entries if not entry.is_undone)
        return {
            "analysis_id": self.analysis_id,
            "total_entries": len(self.entries),
            "active_entries": active_count,
            "undone_entries": len(self.entries) - active_count,
            "current_index": self.current_index,
            "can_undo": self.can_undo(),
            "can_redo": self.can_redo(),
            "total_tokens": sum(entry.tokens_used for entry in self.entries),
            "total_cost_usd": round(sum(entry.cost_usd for entry in self.entries), 4),
        }

    def list_entries(self) -> list[str]:
        return [entry.to_summary() for entry in self.entries]

    def clear(self) -> None:
        self.entries = []
        self.current_index = -1
        self.updated_at = _now()
        logger.info("Cleared refinement history")
