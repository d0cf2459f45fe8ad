"""Ask the model for interview questions that deepen one manuscript passage.

The author selects a passage that feels thin; the questions are put to the
interviewee so the answers can be folded back into that passage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple

from ..editor.selection import DEFAULT_CONTEXT_RADIUS, Selection, extract_context
from .client import AIClient
from .partial_edit import _chapter_title
from .prompts import expansion_questions_system_prompt, expansion_questions_user_prompt

LOGGER = logging.getLogger(__name__)

MAX_QUESTIONS = 5
MIN_QUESTION_LENGTH = 5
MAX_QUESTION_LENGTH = 200

SUBMIT_EXPANSION_QUESTIONS_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "submit_expansion_questions",
        "description": "Return 3 to 5 interview questions that would add concrete and emotional detail to the passage.",
        "parameters": {
            "type": "object",
            "properties": {
                "questions": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 3,
                    "maxItems": MAX_QUESTIONS,
                    "description": "Questions in the manuscript's language, most useful first.",
                },
            },
            "required": ["questions"],
        },
    },
}


class QuestionFocus(str, Enum):
    """What a question mainly asks the interviewee to recall."""

    EMOTIONAL = "emotional"
    TEMPORAL = "temporal"
    RELATIONSHIP = "relationship"
    GENERAL = "general"


_FOCUS_KEYWORDS: Tuple[Tuple[QuestionFocus, Tuple[str, ...]], ...] = (
    (QuestionFocus.EMOTIONAL, ("감정", "느낌", "기분", "마음", "feel", "felt", "emotion")),
    (QuestionFocus.TEMPORAL, ("언제", "시기", "나이", "when", "how old", "what year")),
    (QuestionFocus.RELATIONSHIP, ("누구", "사람", "관계", "who", "relationship")),
)


def classify_question_focus(question: str) -> QuestionFocus:
    lowered = question.lower()
    for focus, keywords in _FOCUS_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return focus
    return QuestionFocus.GENERAL


@dataclass(slots=True, frozen=True)
class ExpansionQuestions:
    """Questions suggested for one selected passage."""

    selection: Selection
    questions: Tuple[str, ...]
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def focuses(self) -> Tuple[QuestionFocus, ...]:
        return tuple(classify_question_focus(question) for question in self.questions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_text": self.selection.text,
            "questions": [
                {"question": question, "focus": focus.value}
                for question, focus in zip(self.questions, self.focuses)
            ],
            "created_at": self.created_at,
        }


async def request_expansion_questions(
    client: AIClient,
    document: str,
    selection: Selection,
    *,
    context_radius: int = DEFAULT_CONTEXT_RADIUS,
    temperature: float | None = 0.7,
) -> ExpansionQuestions:
    """Request questions that would let the author expand ``selection``.

    At most five questions are kept. Questions shorter than six characters
    or longer than 199 are dropped, as are repeats.

    Raises:
        ValueError: when the selection is blank or no usable question remains.
        ToolCallMissingError: when the model does not call the questions tool.
    """

    if not selection.text or not selection.text.strip():
        raise ValueError("No text is selected for expansion")

    context = extract_context(document, selection, context_radius)
    chapter = _chapter_title(document, selection)
    LOGGER.info("Requesting expansion questions (%d chars)", len(selection.text))
    messages = [
        {"role": "system", "content": expansion_questions_system_prompt()},
        {
            "role": "user",
            "content": expansion_questions_user_prompt(selection.text, context=context, chapter_title=chapter),
        },
    ]
    arguments = await client.call_tool(
        messages,
        SUBMIT_EXPANSION_QUESTIONS_TOOL,  # type: ignore[arg-type]
        temperature=temperature,
        metadata={"purpose": "expansion_questions"},
    )
    questions = _usable_questions(arguments)
    if not questions:
        raise ValueError("Model returned no usable expansion questions")
    return ExpansionQuestions(selection=selection, questions=tuple(questions))


def _usable_questions(arguments: Mapping[str, Any]) -> List[str]:
    raw = arguments.get("questions")
    if isinstance(raw, str):
        raw = raw.splitlines()
    if not isinstance(raw, (list, tuple)):
        LOGGER.debug("Expansion questions are not a list: %r", raw)
        return []

    kept: List[str] = []
    for item in raw:
        question = str(item or "").strip()
        if not MIN_QUESTION_LENGTH < len(question) < MAX_QUESTION_LENGTH:
            LOGGER.debug("Dropping expansion question of %d chars", len(question))
            continue
        if question in kept:
            continue
        kept.append(question)
        if len(kept) == MAX_QUESTIONS:
            break
    return kept


__all__ = [
    "ExpansionQuestions",
    "MAX_QUESTIONS",
    "QuestionFocus",
    "SUBMIT_EXPANSION_QUESTIONS_TOOL",
    "classify_question_focus",
    "request_expansion_questions",
]
