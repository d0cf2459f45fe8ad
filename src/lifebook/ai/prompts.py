"""Prompt templates for the interview-flow analysis, partial edits and expansion questions."""

from __future__ import annotations

from typing import Sequence

from ..conversation.models import ConversationTurn
from ..editor.edit_intent import EditIntent
from ..editor.selection import SelectionContext

PENDING_ANSWER = "(awaiting answer)"
NO_CONVERSATION = "(no conversation yet)"


def format_turns(turns: Sequence[ConversationTurn]) -> str:
    """Render turns as the numbered question/answer list both prompts use."""

    if not turns:
        return NO_CONVERSATION
    blocks = []
    for index, turn in enumerate(turns, start=1):
        answer = turn.answer if turn.answered else PENDING_ANSWER
        blocks.append(f"{index}. Question: {turn.question}\n   Answer: {answer}")
    return "\n\n".join(blocks)


def flow_analysis_system_prompt() -> str:
    return (
        "You are a counseling supervisor helping an interviewer collect material for an autobiography.\n"
        "Write a short empathetic reply to the interviewee's latest answer, then decide whether the next "
        "question should follow up on the current topic or transition to a new life area.\n"
        "Prefer staying on a topic while the interviewee is still sharing details; recommend a transition "
        "only when the topic is exhausted or engagement is clearly dropping.\n"
        "Always answer by calling the analyze_conversation_flow function. "
        "Write the empathy message in the interviewee's language."
    )


def flow_analysis_user_prompt(
    turns: Sequence[ConversationTurn],
    *,
    current_topic: str,
    consecutive_count: int,
    project_title: str = "",
) -> str:
    header = [
        f"Project: {project_title}" if project_title else None,
        f"Current topic: {current_topic}",
        f"Consecutive questions on this topic: {consecutive_count}",
    ]
    lines = [line for line in header if line]
    lines.append("")
    lines.append("Recent conversation:")
    lines.append(format_turns(turns))
    return "\n".join(lines)


def partial_edit_system_prompt() -> str:
    return (
        "You revise one passage of an autobiography manuscript at the author's request.\n"
        "Rewrite only the selected passage, keep it consistent with the surrounding text, and preserve its "
        "paragraph structure exactly: keep every line break where it was, never merge or split paragraphs.\n"
        "Always answer by calling the submit_partial_edit function. "
        "Write in the manuscript's language."
    )


def partial_edit_user_prompt(
    selected_text: str,
    instruction: str,
    *,
    intent: EditIntent,
    context: SelectionContext,
    chapter_title: str | None = None,
) -> str:
    sections = []
    if chapter_title:
        sections.append(f"Chapter: {chapter_title}")
    sections.append(f"Request type: {intent.value}")
    sections.append(f"Request:\n{instruction.strip()}")
    if context.before:
        sections.append(f"Text before the passage:\n{context.before}")
    sections.append(f"Selected passage:\n{selected_text.strip()}")
    if context.after:
        sections.append(f"Text after the passage:\n{context.after}")
    return "\n\n".join(sections)


def expansion_questions_system_prompt() -> str:
    return (
        "You help an interviewer deepen one passage of an autobiography manuscript.\n"
        "Suggest 3 to 5 natural questions for the interviewee whose answers would add concrete scenes "
        "and feelings to the selected passage. Ask one thing per question and do not repeat "
        "what the passage already says.\n"
        "Always answer by calling the submit_expansion_questions function. "
        "Write in the manuscript's language."
    )


def expansion_questions_user_prompt(
    selected_text: str,
    *,
    context: SelectionContext,
    chapter_title: str | None = None,
) -> str:
    sections = []
    if chapter_title:
        sections.append(f"Chapter: {chapter_title}")
    if context.before:
        sections.append(f"Text before the passage:\n{context.before}")
    sections.append(f"Passage to expand:\n{selected_text.strip()}")
    if context.after:
        sections.append(f"Text after the passage:\n{context.after}")
    return "\n\n".join(sections)


__all__ = [
    "expansion_questions_system_prompt",
    "expansion_questions_user_prompt",
    "flow_analysis_system_prompt",
    "flow_analysis_user_prompt",
    "format_turns",
    "partial_edit_system_prompt",
    "partial_edit_user_prompt",
]
