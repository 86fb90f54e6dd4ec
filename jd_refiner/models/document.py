"""Job-description package models and path-based read access."""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Missing:
    """Sentinel for a path that does not resolve to any value."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


# ============================================================================
# Document Models
# ============================================================================


class JDModel(BaseModel):
    """Base for document records: every field optional, unknown keys kept."""

    model_config = ConfigDict(extra="allow")


class Role(JDModel):
    """A single recommended role."""

    title: Optional[str] = Field(default=None, description="Role name")
    family: Optional[str] = Field(default=None, description="Craft family")
    service: Optional[str] = Field(default=None, description="Service type for this role")
    hours_per_week: Optional[float] = None
    client_facing: Optional[bool] = None
    purpose: Optional[str] = Field(default=None, description="Why this role exists")

    core_outcomes: Optional[list[str]] = None
    responsibilities: Optional[list[str]] = None
    skills: Optional[list[str]] = None
    tools: Optional[list[str]] = None
    kpis: Optional[list[str]] = None
    personality: Optional[list[str]] = None

    reporting_to: Optional[str] = None
    sample_week: Optional[dict[str, str]] = Field(
        default=None,
        description="Day name (Mon..Fri) to description of that day's work",
    )
    overlap_requirements: Optional[str] = None
    communication_norms: Optional[str] = None


class SplitTableRow(JDModel):
    """One row of the role split / hours allocation table."""

    role: Optional[str] = None
    purpose: Optional[str] = None
    core_outcomes: Optional[list[str]] = None
    hrs: Optional[float] = None
    service: Optional[str] = None


class ServiceRecommendation(JDModel):
    """The recommended service mapping."""

    best_fit: Optional[str] = None
    why: Optional[str] = None
    cost_framing: Optional[str] = None
    next_steps: Optional[list[str]] = None


class OnboardingPlan(JDModel):
    """Two-week onboarding plan."""

    week_1: Optional[list[str]] = None
    week_2: Optional[list[str]] = None


class JobDescriptionDocument(JDModel):
    """
    A complete job-description package.

    The pipeline works on the raw JSON payload so that its shape survives a
    refinement untouched; this model gives typed access to the same data.
    ``to_payload`` dumps only the fields that were present on input.
    """

    what_you_told_us: Optional[str] = Field(
        default=None,
        description="Narrative summary of the client's intake",
    )
    roles: Optional[list[Role]] = None
    split_table: Optional[list[SplitTableRow]] = None
    service_recommendation: Optional[ServiceRecommendation] = None
    onboarding_2w: Optional[OnboardingPlan] = None
    risks: Optional[list[str]] = None
    assumptions: Optional[list[str]] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "JobDescriptionDocument":
        return cls.model_validate(payload)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)

    @property
    def primary_role(self) -> Optional[Role]:
        """The first role, which the refinement keys address."""
        if self.roles:
            return self.roles[0]
        return None


# ============================================================================
# Path Resolution
# ============================================================================

# "roles[0]" -> ("roles", "[0]"); "matrix[1][2]" -> ("matrix", "[1][2]")
_SEGMENT_PATTERN = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX_PATTERN = re.compile(r"\[(\d+)\]")


def _as_tree(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_unset=True)
    return value


def _step(current: Any, key: str) -> Any:
    if isinstance(current, dict) and key in current:
        return current[key]
    return MISSING


def _index(current: Any, position: int) -> Any:
    if isinstance(current, list) and position < len(current):
        return current[position]
    return MISSING


def resolve_path(document: Any, path: str) -> Any:
    """
    Read the value at a dotted/indexed path such as ``roles[0].skills``.

    Returns ``MISSING`` when any step of the traversal does not exist.
    Never raises, whatever the shape of ``document`` or ``path``.
    """
    current = _as_tree(document)

    for segment in path.split("."):
        match = _SEGMENT_PATTERN.match(segment)
        if match is None:
            return MISSING

        key, indexes = match.groups()
        if key:
            current = _step(current, key)
        elif not indexes:
            return MISSING

        for position in _INDEX_PATTERN.findall(indexes):
            current = _index(current, int(position))

        if current is MISSING:
            return MISSING

    return current


# ============================================================================
# Structural Equality
# ============================================================================


def structurally_equal(left: Any, right: Any, ignore_order: bool = False) -> bool:
    """
    Deep value equality for JSON-shaped data.

    Booleans never equal numbers, and a missing value never equals null.
    With ``ignore_order`` lists compare as multisets, so a reordering of the
    same items counts as equal.
    """
    left, right = _as_tree(left), _as_tree(right)

    if left is MISSING or right is MISSING:
        return left is right

    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right

    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(
            structurally_equal(left[key], right[key], ignore_order) for key in left
        )

    if isinstance(left, list) and isinstance(right, list):
        if len(left) != len(right):
            return False
        if ignore_order:
            remaining = list(right)
            for item in left:
                for index, candidate in enumerate(remaining):
                    if structurally_equal(item, candidate, True):
                        del remaining[index]
                        break
                else:
                    return False
            return True
        return all(
            structurally_equal(a, b, ignore_order) for a, b in zip(left, right)
        )

    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return False

    return left == right
