"""Refinement keys: the document paths they address and how they are named."""

import re
from typing import Any

from jd_refiner.models.document import MISSING, resolve_path

# Refinement key -> section path(s) inside the document
SECTION_PATHS: dict[str, list[str]] = {
    "role": ["roles[0].title"],
    "outcomes": ["roles[0].core_outcomes"],
    "responsibilities": ["roles[0].responsibilities"],
    "skills-tools": ["roles[0].skills", "roles[0].tools"],
    "skills": ["roles[0].skills"],
    "tools": ["roles[0].tools"],
    "kpis": ["roles[0].kpis"],
    "service": ["service_recommendation.best_fit"],
    "personality": ["roles[0].personality"],
    "sample-week": ["roles[0].sample_week"],
    "onboarding": ["onboarding_2w"],
    "communication": ["roles[0].communication_norms"],
    "overlap": ["roles[0].overlap_requirements"],
}

# Titles shown to the reviewer for each key
SECTION_TITLES: dict[str, str] = {
    "role": "Recommended Role",
    "outcomes": "Core Outcomes (90 Days)",
    "responsibilities": "Key Responsibilities",
    "skills-tools": "Skills & Tools",
    "kpis": "Key Performance Indicators",
    "service": "Service Recommendation",
}

_WORD_START = re.compile(r"\b\w")

# List-type sections a removed concept has to be purged from
RELATED_LIST_SECTIONS = ["responsibilities", "skills", "tools", "sample_week"]


def resolve_section_paths(refinement_key: str) -> list[str]:
    """Paths for a key; unknown keys are treated as a literal path."""
    return list(SECTION_PATHS.get(refinement_key, [refinement_key]))


def title_case_key(refinement_key: str) -> str:
    """``sample-week`` -> ``Sample Week``; letters after the first are left as-is."""
    return _WORD_START.sub(lambda m: m.group(0).upper(), refinement_key.replace("-", " "))


def section_display_name(refinement_key: str) -> str:
    return SECTION_TITLES.get(refinement_key) or title_case_key(refinement_key)


def _non_empty(value: Any) -> bool:
    return value is not MISSING and bool(value)


def reviewable_sections(document: Any) -> list[str]:
    """
    Keys a document currently offers for review, in review order.

    The role is always offered once a first role exists; list sections only
    when they have content.
    """
    if resolve_path(document, "roles[0]") is MISSING:
        return []

    keys = ["role"]
    if _non_empty(resolve_path(document, "roles[0].core_outcomes")):
        keys.append("outcomes")
    if _non_empty(resolve_path(document, "roles[0].responsibilities")):
        keys.append("responsibilities")
    if _non_empty(resolve_path(document, "roles[0].skills")) or _non_empty(
        resolve_path(document, "roles[0].tools")
    ):
        keys.append("skills-tools")
    if _non_empty(resolve_path(document, "roles[0].kpis")):
        keys.append("kpis")
    if _non_empty(resolve_path(document, "service_recommendation")):
        keys.append("service")
    return keys
