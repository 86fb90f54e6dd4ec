"""Keyword-driven intent classification for section feedback.

Rules are tried in order; the first whose trigger words occur in the
feedback wins. Target extraction is best-effort: when no pattern matches,
the rule's fallback phrase is used instead.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .sections import RELATED_LIST_SECTIONS


class FeedbackIntent(str, Enum):
    """What a piece of feedback asks for."""

    REMOVE = "remove"
    DEMOTE = "demote"  # Mark as optional / nice to have
    EMPHASIZE = "emphasize"
    ADD = "add"
    MODIFY = "modify"  # Fallback


@dataclass(frozen=True)
class IntentRule:
    """Trigger words, target extractors and the instruction template for one intent."""

    intent: FeedbackIntent
    triggers: tuple[str, ...]
    template: str
    patterns: tuple[re.Pattern, ...] = ()
    fallback_target: Optional[str] = None

    def matches(self, feedback: str) -> bool:
        lowered = feedback.lower()
        return any(trigger in lowered for trigger in self.triggers)

    def extract_target(self, feedback: str) -> Optional[str]:
        for pattern in self.patterns:
            match = pattern.search(feedback)
            if match:
                return match.group(1).strip()
        return self.fallback_target


@dataclass
class DerivedAction:
    """The instruction derived from one feedback entry."""

    intent: FeedbackIntent
    instruction: str
    target: Optional[str] = None
    related_sections: list[str] = field(default_factory=list)


RELATED = ", ".join(RELATED_LIST_SECTIONS)

INTENT_RULES: list[IntentRule] = [
    IntentRule(
        intent=FeedbackIntent.REMOVE,
        triggers=("remove", "delete"),
        patterns=(
            re.compile(r"remove (?:the )?(.+?)(?:\s+part|\s+can|\s+and|$)", re.IGNORECASE),
            re.compile(r"delete (?:the )?(.+?)(?:\s+part|\s+can|\s+and|$)", re.IGNORECASE),
        ),
        fallback_target="specified content",
        template=(
            'Remove all references to "{target}" from the {section} section '
            f"and any related sections ({RELATED})."
        ),
    ),
    IntentRule(
        intent=FeedbackIntent.DEMOTE,
        triggers=("good to have", "nice to have", "optional"),
        patterns=(
            re.compile(r"mark (?:the )?(.+?) (?:as|skills)", re.IGNORECASE),
            re.compile(r"(.+?) (?:as good to have|as nice to have)", re.IGNORECASE),
        ),
        fallback_target="mentioned skills",
        template=(
            'Update the language to mark "{target}" as optional/nice-to-have. '
            'Example: "Proficient in {target} (nice to have)" or "Bonus: Experience with {target}".'
        ),
    ),
    IntentRule(
        intent=FeedbackIntent.EMPHASIZE,
        triggers=("focus more", "emphasize"),
        patterns=(
            re.compile(r"focus more on (?:the )?(.+?)(?:\s+part|$)", re.IGNORECASE),
            re.compile(r"emphasize (?:the )?(.+?)(?:\s+part|$)", re.IGNORECASE),
        ),
        fallback_target="specified area",
        template=(
            'Increase emphasis on "{target}" throughout the {section} section. '
            "Add more detail and prominence."
        ),
    ),
    IntentRule(
        intent=FeedbackIntent.ADD,
        triggers=("add", "include"),
        template='Add relevant content to the {section} section based on the feedback: "{feedback}"',
    ),
]

FALLBACK_TEMPLATE = 'Modify the {section} section according to: "{feedback}"'


def classify_feedback(section: str, feedback: str) -> DerivedAction:
    """
    Derive the action sentence for one section's feedback.

    Args:
        section: Refinement key the feedback is attached to
        feedback: The reviewer's text

    Returns:
        DerivedAction with the winning intent, extracted target and instruction
    """
    for rule in INTENT_RULES:
        if not rule.matches(feedback):
            continue

        target = rule.extract_target(feedback)
        instruction = rule.template.format(section=section, target=target, feedback=feedback)
        return DerivedAction(
            intent=rule.intent,
            instruction=instruction,
            target=target,
            related_sections=(
                list(RELATED_LIST_SECTIONS) if rule.intent == FeedbackIntent.REMOVE else []
            ),
        )

    return DerivedAction(
        intent=FeedbackIntent.MODIFY,
        instruction=FALLBACK_TEMPLATE.format(section=section, feedback=feedback),
    )
