"""Ask the model to rewrite one selected passage of the manuscript.

The model only proposes replacement text. Applying it is left to the caller,
which hands :meth:`PartialEditProposal.to_patch` to the manuscript store so the
selection is relocated against the latest text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from ..editor.chapters import chapter_at
from ..editor.edit_intent import EditIntent, classify_edit_request
from ..editor.patches import Patch
from ..editor.selection import DEFAULT_CONTEXT_RADIUS, Selection, extract_context
from .client import AIClient
from .prompts import partial_edit_system_prompt, partial_edit_user_prompt

LOGGER = logging.getLogger(__name__)

CHANGE_TYPES = ("grammar", "style", "content", "structure", "tone")

SUBMIT_PARTIAL_EDIT_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "submit_partial_edit",
        "description": "Return the rewritten passage, a short summary of the change and its type.",
        "parameters": {
            "type": "object",
            "properties": {
                "modified_text": {"type": "string", "description": "The rewritten passage."},
                "edit_summary": {"type": "string", "description": "Summary of what changed."},
                "change_type": {
                    "type": "string",
                    "enum": list(CHANGE_TYPES),
                    "description": "Kind of change made.",
                },
            },
            "required": ["modified_text", "edit_summary", "change_type"],
        },
    },
}


@dataclass(slots=True, frozen=True)
class PartialEditProposal:
    """Rewrite suggested by the model for one selection."""

    selection: Selection
    modified_text: str
    edit_summary: str = ""
    change_type: str = "content"
    intent: EditIntent = EditIntent.GENERAL
    instruction: str = ""
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def original_text(self) -> str:
        return self.selection.text

    def to_patch(self, patch_id: str | None = None) -> Patch:
        return Patch(selection=self.selection, replacement=self.modified_text, patch_id=patch_id)


async def request_partial_edit(
    client: AIClient,
    document: str,
    selection: Selection,
    instruction: str,
    *,
    context_radius: int = DEFAULT_CONTEXT_RADIUS,
    temperature: float | None = 0.7,
) -> PartialEditProposal:
    """Request a rewrite of ``selection`` following ``instruction``.

    Raises:
        ValueError: when the selection or the instruction is blank, or the
            model answers with an empty rewrite.
        ToolCallMissingError: when the model does not call the edit tool.
    """

    if not selection.text or not selection.text.strip():
        raise ValueError("No text is selected for editing")
    if not instruction or not instruction.strip():
        raise ValueError("An edit instruction is required")

    intent = classify_edit_request(instruction)
    context = extract_context(document, selection, context_radius)
    chapter = _chapter_title(document, selection)
    LOGGER.info(
        "Requesting partial edit (%d chars, intent=%s)",
        len(selection.text),
        intent.value,
    )
    messages = [
        {"role": "system", "content": partial_edit_system_prompt()},
        {
            "role": "user",
            "content": partial_edit_user_prompt(
                selection.text,
                instruction,
                intent=intent,
                context=context,
                chapter_title=chapter,
            ),
        },
    ]
    arguments = await client.call_tool(
        messages,
        SUBMIT_PARTIAL_EDIT_TOOL,  # type: ignore[arg-type]
        temperature=temperature,
        metadata={"purpose": "partial_edit"},
    )
    return _proposal_from_arguments(arguments, selection, instruction.strip(), intent)


def _proposal_from_arguments(
    arguments: Mapping[str, Any],
    selection: Selection,
    instruction: str,
    intent: EditIntent,
) -> PartialEditProposal:
    modified = str(arguments.get("modified_text") or "").strip()
    if not modified:
        raise ValueError("Model returned an empty rewrite")
    change_type = str(arguments.get("change_type") or "content").strip().lower()
    if change_type not in CHANGE_TYPES:
        LOGGER.debug("Unknown change type %r; recording as content", change_type)
        change_type = "content"
    return PartialEditProposal(
        selection=selection,
        modified_text=modified,
        edit_summary=str(arguments.get("edit_summary") or "").strip(),
        change_type=change_type,
        intent=intent,
        instruction=instruction,
    )


def _chapter_title(document: str, selection: Selection) -> str | None:
    index = document.find(selection.text) if document else -1
    if index == -1:
        return None
    chapter = chapter_at(document, index)
    if chapter is None or not chapter.title:
        return None
    return chapter.title


__all__ = [
    "CHANGE_TYPES",
    "PartialEditProposal",
    "SUBMIT_PARTIAL_EDIT_TOOL",
    "request_partial_edit",
]
