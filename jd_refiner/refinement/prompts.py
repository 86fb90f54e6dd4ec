"""Prompt templates for job-description refinement."""

import json
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .intents import classify_feedback
from .models import ChatMessage, FeedbackLedger
from .sections import RELATED_LIST_SECTIONS, section_display_name


@dataclass
class CompiledPrompt:
    """The system and user text sent to the completion service."""

    system: str
    user: str
    actionable_keys: tuple[str, ...] = ()

    @property
    def is_echo(self) -> bool:
        """True when nothing was requested and the model should echo the document."""
        return not self.actionable_keys


SYSTEM_PROMPT = """You are an expert job description refinement assistant. Your role is to take an existing job description and user feedback, then produce an updated version that incorporates their requested changes.

CRITICAL RULES:
1. ONLY modify sections where the user provided feedback (satisfied: false)
2. Maintain the exact JSON structure provided
3. Keep all other sections completely unchanged
4. Be precise and surgical with edits - don't over-modify
5. Ensure consistency across related fields (e.g., if responsibilities change, skills might need adjustment)
6. Return ONLY valid JSON in this exact format:
   {
     "what_you_told_us": "...",
     "roles": [...],
     "split_table": [...],
     "service_recommendation": {...},
     "onboarding_2w": {...},
     "risks": [...],
     "assumptions": [...]
   }
7. Preserve all original formatting, arrays, and nested structures

REFINEMENT APPROACH:
- If user says "remove X", completely remove references to X from ALL related sections
- If user says "focus more on Y", emphasize Y in relevant sections
- If user says "mark as good to have", adjust the language (e.g., "Proficient in X (nice to have)")
- If user says "add more", expand the section with relevant additions
- Always maintain professional tone and specificity
- When removing something like "ETL", check: responsibilities, skills, tools, and sample_week

IMPORTANT: You must return valid JSON that matches the exact structure of the input."""


ECHO_PROMPT = """The user is satisfied with all sections. Return the job description unchanged as valid JSON.

Current JD:
{document_json}"""


REFINEMENT_PROMPT = """# Current Job Description
{document_json}

# User Refinement Requests
The user has reviewed the job description and provided the following feedback on specific sections:
{requests}
{context}
# Your Task
Refine ONLY the sections mentioned above based on the user's feedback.

Specific instructions per section:
{instructions}

CRITICAL REMINDERS:
1. Keep all OTHER sections exactly as they are (do not modify sections marked satisfied: true)
2. Maintain the exact JSON structure
3. If removing content (like ETL), remove it from ALL related sections:
{related_sections}
4. If marking something as "nice to have", update the language in the relevant arrays
5. Ensure changes are cohesive and consistent across the document
6. Return the COMPLETE updated job description as valid JSON

Return ONLY the JSON object, no explanations or markdown."""


REQUEST_TEMPLATE = """
**Section: {display_name}** ({key})
User Feedback: "{feedback}"
Action Required: Update this section based on the feedback
"""

INSTRUCTION_TEMPLATE = """
**{key}**:
- Feedback: {feedback}
- Action: {action}"""


def document_to_json(document: Any) -> str:
    """Serialize the document exactly as it will be shown to the model."""
    return json.dumps(document, indent=2, ensure_ascii=False)


def format_chat_context(history: Sequence[ChatMessage], max_turns: int = 6) -> str:
    """Render the most recent ``max_turns`` messages as author-labelled lines."""
    if max_turns <= 0:
        return ""

    lines = []
    for message in list(history)[-max_turns:]:
        author = "User" if message.role == "user" else "Assistant"
        lines.append(f"{author}: {message.content}")
    return "\n".join(lines)


def compile_prompt(
    document: Any,
    ledger: FeedbackLedger,
    history: Optional[Sequence[ChatMessage]] = None,
    history_turns: int = 6,
) -> CompiledPrompt:
    """
    Build the refinement prompt for a document and its feedback ledger.

    The output is deterministic for the same inputs.

    Args:
        document: The current document (plain JSON data)
        ledger: Per-section judgements
        history: Prior conversation turns, oldest first
        history_turns: How many of the most recent turns to include

    Returns:
        CompiledPrompt with the fixed system prompt and the user prompt
    """
    document_json = document_to_json(document)
    entries = ledger.unsatisfied_entries()

    if not entries:
        return CompiledPrompt(
            system=SYSTEM_PROMPT,
            user=ECHO_PROMPT.format(document_json=document_json),
        )

    requests = "\n".join(
        REQUEST_TEMPLATE.format(
            display_name=section_display_name(key),
            key=key,
            feedback=entry.feedback,
        )
        for key, entry in entries
    )
    instructions = "\n".join(
        INSTRUCTION_TEMPLATE.format(
            key=key,
            feedback=entry.feedback,
            action=classify_feedback(key, entry.feedback).instruction,
        )
        for key, entry in entries
    )

    context = ""
    recent = format_chat_context(history or [], history_turns)
    if recent:
        context = f"\n# Previous Conversation Context\n{recent}\n"

    user = REFINEMENT_PROMPT.format(
        document_json=document_json,
        requests=requests,
        context=context,
        instructions=instructions,
        related_sections="\n".join(f"   - {name}" for name in RELATED_LIST_SECTIONS),
    )

    return CompiledPrompt(
        system=SYSTEM_PROMPT,
        user=user,
        actionable_keys=tuple(key for key, _ in entries),
    )
