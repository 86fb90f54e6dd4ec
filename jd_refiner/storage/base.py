"""Saved-analysis persistence contract."""

import math
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from jd_refiner.models.document import MISSING, resolve_path


class StorageError(Exception):
    """Base error for the analysis store."""


class AnalysisNotFoundError(StorageError):
    def __init__(self, analysis_id: str):
        super().__init__(f"Analysis not found: {analysis_id}")
        self.analysis_id = analysis_id


class VersionConflictError(StorageError):
    """The analysis changed since the caller last read it."""

    def __init__(self, analysis_id: str, expected: int, actual: int):
        super().__init__(
            f"Analysis {analysis_id} is at version {actual}, expected {expected}"
        )
        self.analysis_id = analysis_id
        self.expected = expected
        self.actual = actual


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _value(document: dict[str, Any], path: str, default: Any) -> Any:
    value = resolve_path(document, path)
    return default if value is MISSING or value is None else value


class SavedAnalysis(BaseModel):
    """A job-description package saved by its owner."""

    id: str
    owner_id: str
    title: str = ""
    document: dict[str, Any]

    finalized: bool = False
    finalized_at: Optional[datetime] = None

    # Incremented on every save
    version: int = 1
    refinement_count: int = 0

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def preview(self) -> dict[str, Any]:
        """Headline fields shown in listings."""
        outcomes = _value(self.document, "roles[0].core_outcomes", [])
        return {
            "recommended_role": _value(self.document, "roles[0].title", "Unknown"),
            "service_mapping": _value(
                self.document, "service_recommendation.best_fit", "Unknown"
            ),
            "weekly_hours": _value(self.document, "roles[0].hours_per_week", 0),
            "primary_outcome": outcomes[0] if isinstance(outcomes, list) and outcomes else "",
        }

    def to_listing(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "isFinalized": self.finalized,
            "finalizedAt": self.finalized_at.isoformat() if self.finalized_at else None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "refinementCount": self.refinement_count,
            "version": self.version,
            "preview": self.preview(),
        }


class AnalysisFilters(BaseModel):
    """Listing filters and pagination."""

    finalized: Optional[bool] = None
    search: Optional[str] = Field(default=None, description="Case-insensitive title match")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def matches(self, analysis: SavedAnalysis) -> bool:
        if self.finalized is not None and analysis.finalized != self.finalized:
            return False
        if self.search and self.search.lower() not in analysis.title.lower():
            return False
        return True


class Page(BaseModel):
    """One page of a listing, newest first."""

    items: list[SavedAnalysis] = Field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_more(self) -> bool:
        return (self.page - 1) * self.limit + len(self.items) < self.total

    def to_payload(self) -> dict[str, Any]:
        return {
            "analyses": [item.to_listing() for item in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "totalPages": self.total_pages,
                "hasMore": self.has_more,
            },
        }


class AnalysisStore(ABC):
    """
    Persistence for saved analyses.

    Saving with ``expected_version`` is a compare-and-set: the write only
    happens when the stored version still equals it.
    """

    @abstractmethod
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
        """Create (no ``analysis_id``) or update an analysis; returns the stored record."""

    @abstractmethod
    def get(self, analysis_id: str) -> SavedAnalysis:
        """Raises AnalysisNotFoundError when absent."""

    @abstractmethod
    def list_by_owner(
        self,
        owner_id: str,
        filters: Optional[AnalysisFilters] = None,
    ) -> Page:
        pass

    @abstractmethod
    def delete(self, analysis_id: str) -> None:
        """Raises AnalysisNotFoundError when absent."""
