"""Detect which requested sections actually changed after refinement."""

import logging
from typing import Any

from jd_refiner.models.document import resolve_path, structurally_equal

from .models import ChangeRecord, FeedbackLedger
from .sections import resolve_section_paths, title_case_key

logger = logging.getLogger(__name__)


def detect_changes(
    old_document: Any,
    new_document: Any,
    ledger: FeedbackLedger,
    ignore_order: bool = True,
) -> list[ChangeRecord]:
    """
    Compare the sections each actionable ledger entry points at.

    Entries are visited in ledger order, and a key's paths in lookup-table
    order. Only paths whose values differ produce a record; no value-level
    diff is attempted.

    Args:
        old_document: Document before refinement
        new_document: Document returned by the model
        ledger: Feedback that drove the refinement
        ignore_order: Treat reordered lists as unchanged

    Returns:
        One ChangeRecord per changed path
    """
    changes: list[ChangeRecord] = []

    for key, entry in ledger.unsatisfied_entries():
        for path in resolve_section_paths(key):
            before = resolve_path(old_document, path)
            after = resolve_path(new_document, path)

            if structurally_equal(before, after, ignore_order=ignore_order):
                logger.debug(f"No change at {path} for '{key}'")
                continue

            changes.append(
                ChangeRecord(section=path, refinement_key=key, feedback=entry.feedback)
            )

    return changes


def build_summary(changes: list[ChangeRecord]) -> str:
    """Human-readable summary of the changed sections."""
    if not changes:
        return "No changes were made to the job description."

    bullets = [
        f"• **{title_case_key(change.refinement_key)}**: {change.feedback}"
        for change in changes
    ]
    plural = "s" if len(changes) > 1 else ""
    return (
        f"I've updated {len(changes)} section{plural} based on your feedback:\n\n"
        + "\n".join(bullets)
    )
