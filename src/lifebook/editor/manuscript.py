"""Manuscript store owning the mutable manuscript text.

The patch functions in :mod:`lifebook.editor.patches` are pure; this store is
where their results are committed. Every patch is applied against the latest
text held here, one at a time, so two edits racing back from the AI are
serialized rather than applied against stale snapshots.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from ..events import EventBus, ManuscriptPatched, ManuscriptRestored, PatchFailed
from .document_model import ManuscriptState
from .patches import BatchPatchResult, Patch, PatchResult, apply_patch, apply_patches_in_order
from .selection import DEFAULT_CONTEXT_RADIUS, Selection, SelectionContext, extract_context

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class HistoryEntry:
    """Manuscript text as it was before a committed change."""

    text: str
    action: str
    patch_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ManuscriptStore:
    """Single source of truth for the manuscript being edited.

    Every committed change records the previous text so it can be undone.
    Committing a new change after an undo discards the redo branch.

    Events Emitted:
        - ManuscriptPatched: after a patch changed the text
        - PatchFailed: when a patch could not be located
        - ManuscriptRestored: after an undo or redo
    """

    MAX_HISTORY = 50

    def __init__(
        self,
        state: ManuscriptState | None = None,
        *,
        event_bus: EventBus | None = None,
        context_radius: int = DEFAULT_CONTEXT_RADIUS,
        max_history: int = MAX_HISTORY,
    ) -> None:
        self._state = state or ManuscriptState()
        self._bus = event_bus or EventBus()
        self._context_radius = context_radius
        self._max_history = max(1, max_history)
        self._undo_stack: list[HistoryEntry] = []
        self._redo_stack: list[HistoryEntry] = []

    @property
    def state(self) -> ManuscriptState:
        return self._state

    @property
    def text(self) -> str:
        return self._state.text

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        """Undoable entries, oldest first."""

        return tuple(self._undo_stack)

    def replace_text(self, text: str) -> None:
        """Overwrite the manuscript, e.g. after a direct edit in the view."""

        if text == self._state.text:
            return
        self._record("replace")
        self._state.revise(text)

    def context_for(self, selection: Selection) -> SelectionContext:
        return extract_context(self._state.text, selection, self._context_radius)

    def apply(self, patch: Patch) -> PatchResult:
        result = apply_patch(self._state.text, patch)
        if result.ok:
            self._record("patch", patch.patch_id)
            self._state.revise(result.text)
        self._publish(patch, result)
        return result

    def apply_batch(self, patches: Iterable[Patch]) -> BatchPatchResult:
        """Apply several patches back to front; failures are reported individually.

        A batch is undone as a single step.
        """

        batch = apply_patches_in_order(self._state.text, patches)
        if batch.applied:
            self._record("batch")
            self._state.revise(batch.text)
        for patch, result in batch.results:
            self._publish(patch, result)
        LOGGER.info(
            "Batch update finished: %d/%d patch(es) applied",
            batch.applied,
            batch.applied + batch.failed,
        )
        return batch

    def undo(self) -> bool:
        """Restore the text before the last committed change; False when there is none."""

        if not self._undo_stack:
            return False
        entry = self._undo_stack.pop()
        self._redo_stack.append(HistoryEntry(text=self._state.text, action=entry.action, patch_id=entry.patch_id))
        self._restore(entry, "undo")
        return True

    def redo(self) -> bool:
        if not self._redo_stack:
            return False
        entry = self._redo_stack.pop()
        self._undo_stack.append(HistoryEntry(text=self._state.text, action=entry.action, patch_id=entry.patch_id))
        self._restore(entry, "redo")
        return True

    def _record(self, action: str, patch_id: str | None = None) -> None:
        self._undo_stack.append(HistoryEntry(text=self._state.text, action=action, patch_id=patch_id))
        if len(self._undo_stack) > self._max_history:
            self._undo_stack.pop(0)
        self._redo_stack.clear()

    def _restore(self, entry: HistoryEntry, direction: str) -> None:
        self._state.revise(entry.text)
        LOGGER.debug("%s of %s restored version %d", direction, entry.action, self._state.version_id)
        self._bus.publish(
            ManuscriptRestored(version_id=self._state.version_id, direction=direction, action=entry.action)
        )

    def _publish(self, patch: Patch, result: PatchResult) -> None:
        if result.ok and result.strategy is not None and result.span is not None:
            self._bus.publish(
                ManuscriptPatched(
                    version_id=self._state.version_id,
                    strategy=result.strategy.value,
                    span=result.span,
                    summary=result.summary,
                    patch_id=patch.patch_id,
                )
            )
            return
        error = result.error
        LOGGER.warning(
            "Patch %s rejected: %s",
            patch.patch_id or "<anonymous>",
            error.kind.value if error else "unknown",
        )
        self._bus.publish(
            PatchFailed(
                version_id=self._state.version_id,
                reason=error.kind.value if error else "unknown",
                message=error.message if error else "",
                patch_id=patch.patch_id,
            )
        )


__all__ = ["HistoryEntry", "ManuscriptStore"]
