"""Data models for job-description packages."""

from jd_refiner.models.document import (
    MISSING,
    JobDescriptionDocument,
    OnboardingPlan,
    Role,
    ServiceRecommendation,
    SplitTableRow,
    resolve_path,
    structurally_equal,
)

__all__ = [
    "JobDescriptionDocument",
    "Role",
    "SplitTableRow",
    "ServiceRecommendation",
    "OnboardingPlan",
    # Path access
    "MISSING",
    "resolve_path",
    "structurally_equal",
]
