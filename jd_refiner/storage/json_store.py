"""File-backed analysis store: one JSON file per analysis."""

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from .base import (
    AnalysisFilters,
    AnalysisNotFoundError,
    AnalysisStore,
    Page,
    SavedAnalysis,
    VersionConflictError,
)

logger = logging.getLogger(__name__)


class JsonFileAnalysisStore(AnalysisStore):
    """
    Stores each analysis as ``<root>/<id>.json``.

    Refinement histories live beside them as ``<id>.history.json`` and are
    removed together with the analysis.

    Usage:
        store = JsonFileAnalysisStore("./analyses")
        saved = store.save(document, owner_id="user-1", title="Ops Assistant")
        store.save(refined, "user-1", analysis_id=saved.id, expected_version=saved.version)
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def path_for(self, analysis_id: str) -> Path:
        return self.root / f"{analysis_id}.json"

    def history_path_for(self, analysis_id: str) -> Path:
        return self.root / f"{analysis_id}.history.json"

    def _read(self, path: Path) -> SavedAnalysis:
        with open(path) as f:
            return SavedAnalysis.model_validate(json.load(f))

    def _write(self, analysis: SavedAnalysis) -> None:
        path = self.path_for(analysis.id)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(analysis.model_dump_json(indent=2))
        tmp_path.replace(path)

    def save(
        self,
        document: dict[str, Any],
        owner_id: str,
        title: str = "",
        analysis_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        finalized: Optional[bool] = None,
        refined: bool = False,
    ) -> SavedAnalysis:
        now = datetime.now(timezone.utc)

        with self._lock:
            if analysis_id is None:
                analysis = SavedAnalysis(
                    id=uuid.uuid4().hex,
                    owner_id=owner_id,
                    title=title,
                    document=document,
                    finalized=bool(finalized),
                    finalized_at=now if finalized else None,
                )
                self._write(analysis)
                logger.info(f"Created analysis {analysis.id} for {owner_id}")
                return analysis

            current = self.get(analysis_id)
            if expected_version is not None and current.version != expected_version:
                raise VersionConflictError(analysis_id, expected_version, current.version)

            updates: dict[str, Any] = {
                "document": document,
                "version": current.version + 1,
                "updated_at": now,
                "refinement_count": current.refinement_count + (1 if refined else 0),
            }
            if title:
                updates["title"] = title
            if finalized is not None and finalized != current.finalized:
                updates["finalized"] = finalized
                updates["finalized_at"] = now if finalized else None

            analysis = current.model_copy(update=updates)
            self._write(analysis)

        logger.info(f"Saved analysis {analysis.id} at version {analysis.version}")
        return analysis

    def get(self, analysis_id: str) -> SavedAnalysis:
        path = self.path_for(analysis_id)
        if not path.exists():
            raise AnalysisNotFoundError(analysis_id)
        return self._read(path)

    def _iter_all(self):
        for path in self.root.glob("*.json"):
            if path.name.endswith(".history.json"):
                continue
            try:
                yield self._read(path)
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable analysis file {path}: {e}")

    def list_by_owner(
        self,
        owner_id: str,
        filters: Optional[AnalysisFilters] = None,
    ) -> Page:
        filters = filters or AnalysisFilters()

        matching = [
            analysis
            for analysis in self._iter_all()
            if analysis.owner_id == owner_id and filters.matches(analysis)
        ]
        matching.sort(key=lambda analysis: analysis.created_at, reverse=True)

        return Page(
            items=matching[filters.offset : filters.offset + filters.limit],
            page=filters.page,
            limit=filters.limit,
            total=len(matching),
        )

    def delete(self, analysis_id: str) -> None:
        path = self.path_for(analysis_id)
        with self._lock:
            if not path.exists():
                raise AnalysisNotFoundError(analysis_id)
            path.unlink()
            self.history_path_for(analysis_id).unlink(missing_ok=True)
        logger.info(f"Deleted analysis {analysis_id}")
