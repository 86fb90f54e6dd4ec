"""Persistence for saved job-description analyses."""

from jd_refiner.storage.base import (
    AnalysisFilters,
    AnalysisNotFoundError,
    AnalysisStore,
    Page,
    SavedAnalysis,
    StorageError,
    VersionConflictError,
)
from jd_refiner.storage.json_store import JsonFileAnalysisStore

__all__ = [
    "AnalysisStore",
    "JsonFileAnalysisStore",
    "SavedAnalysis",
    "AnalysisFilters",
    "Page",
    # Errors
    "StorageError",
    "AnalysisNotFoundError",
    "VersionConflictError",
]
