"""Refinement of saved analyses: load, refine, save with a version check."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from jd_refiner.models.document import structurally_equal
from jd_refiner.storage.base import AnalysisStore, SavedAnalysis, VersionConflictError

from .engine import RefinementEngine
from .errors import AccessDeniedError
from .history import RefinementHistory
from .models import (
    ChatMessage,
    FeedbackLedger,
    RefinementPolicy,
    RefinementRequest,
    RefinementResult,
)

logger = logging.getLogger(__name__)


@dataclass
class SavedRefinement:
    """Outcome of refining a saved analysis."""

    analysis: SavedAnalysis
    result: RefinementResult
    saved: bool


class AnalysisRefinementService:
    """
    Refines analyses held in an AnalysisStore.

    The stored version is checked twice: against the caller's
    ``expected_version`` before the model is called, and again as a
    compare-and-set when the refined document is written, so a concurrent
    update made during the completion is never overwritten.
    """

    def __init__(
        self,
        engine: RefinementEngine,
        store: AnalysisStore,
        history_dir: Optional[Union[str, Path]] = None,
    ):
        self.engine = engine
        self.store = store
        self.history_dir = Path(history_dir) if history_dir else None

    def load_history(self, analysis: SavedAnalysis) -> Optional[RefinementHistory]:
        if self.history_dir is None:
            return None
        document_path = self.history_dir / f"{analysis.id}.json"
        return RefinementHistory.load_for_document(document_path) or RefinementHistory.create(
            analysis.id, title=analysis.title, document_path=document_path
        )

    async def refine_saved(
        self,
        analysis_id: str,
        user_id: str,
        ledger: Union[FeedbackLedger, dict[str, Any]],
        chat_history: Optional[Sequence[Union[ChatMessage, dict[str, Any]]]] = None,
        expected_version: Optional[int] = None,
        policy: Optional[RefinementPolicy] = None,
    ) -> SavedRefinement:
        """
        Refine a saved analysis owned by ``user_id``.

        Raises:
            AnalysisNotFoundError: No such analysis
            AccessDeniedError: The analysis belongs to someone else
            VersionConflictError: The analysis changed since ``expected_version``
            RefinementError: The refinement itself failed; nothing is saved
        """
        analysis = self.store.get(analysis_id)
        if analysis.owner_id != user_id:
            raise AccessDeniedError(details=f"Analysis {analysis_id} belongs to another user")

        if expected_version is not None and analysis.version != expected_version:
            raise VersionConflictError(analysis_id, expected_version, analysis.version)

        request = RefinementRequest(
            current_document=analysis.document,
            refinements=ledger,
            chat_history=list(chat_history or []),
        )
        history = self.load_history(analysis)
        result = await self.engine.refine(request, policy=policy, history=history)

        if structurally_equal(result.updated_document, analysis.document):
            logger.info(f"Analysis {analysis_id} unchanged by refinement; not saving")
            return SavedRefinement(analysis=analysis, result=result, saved=False)

        saved = self.store.save(
            result.updated_document,
            owner_id=user_id,
            analysis_id=analysis_id,
            expected_version=analysis.version,
            refined=True,
        )
        if history is not None and history.file_path is not None:
            history.save()

        logger.info(
            f"Refined analysis {analysis_id}: version {analysis.version} -> {saved.version}, "
            f"{len(result.changed_sections)} changed sections"
        )
        return SavedRefinement(analysis=saved, result=result, saved=True)
