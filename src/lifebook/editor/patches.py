"""Selection-anchored patch application for manuscript edits.

A patch replaces the passage a user highlighted with new text (usually an AI
rewrite). By the time the replacement arrives the manuscript may have moved on,
so the passage is relocated with three progressively looser strategies:

``exact``
    the selected text occurs verbatim; its first occurrence is replaced.
``normalized``
    the text occurs once whitespace runs are collapsed; the first match of a
    whitespace-tolerant pattern in the original document is replaced.
``boundary``
    the first and last :data:`BOUNDARY_ANCHOR_CHARS` characters still occur in
    order; everything between the two anchors is replaced.

Nothing is ever partially applied: a failed lookup returns the input document
untouched together with a structured :class:`PatchError`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence, Tuple

from .selection import Selection, clamp_range

LOGGER = logging.getLogger(__name__)

BOUNDARY_ANCHOR_CHARS = 50
RESELECT_MESSAGE = "The selected passage could not be located in the manuscript; please reselect it."

_WHITESPACE_RE = re.compile(r"\s+")


class PatchStrategy(str, Enum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    BOUNDARY = "boundary"


class PatchErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


@dataclass(slots=True, frozen=True)
class PatchError:
    """Why a patch could not be applied."""

    kind: PatchErrorKind
    message: str
    expected: str | None = None

    def details(self) -> dict[str, str | None]:
        return {
            "reason": self.kind.value,
            "message": self.message,
            "expected": self.expected,
        }


class PatchApplyError(RuntimeError):
    """Raised by :meth:`PatchResult.unwrap` when a patch failed."""

    def __init__(self, error: PatchError) -> None:
        super().__init__(error.message)
        self.error = error
        self.reason = error.kind.value
        self.expected = error.expected

    def details(self) -> dict[str, str | None]:
        return self.error.details()


@dataclass(slots=True, frozen=True)
class Patch:
    """Request to replace ``selection`` with ``replacement``. Consumed once."""

    selection: Selection
    replacement: str
    patch_id: Optional[str] = None


@dataclass(slots=True)
class PatchResult:
    """Outcome of applying one patch to a document."""

    text: str
    strategy: PatchStrategy | None = None
    span: Tuple[int, int] | None = None
    spans: Tuple[Tuple[int, int], ...] = ()
    summary: str = ""
    error: PatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        """Return the patched text or raise :class:`PatchApplyError`."""

        if self.error is not None:
            raise PatchApplyError(self.error)
        return self.text


@dataclass(slots=True)
class BatchPatchResult:
    """Outcome of applying several patches one after another."""

    text: str
    results: Tuple[Tuple[Patch, PatchResult], ...] = ()
    applied: int = 0
    failed: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def failures(self) -> list[Tuple[Patch, PatchResult]]:
        return [(patch, result) for patch, result in self.results if not result.ok]


def apply_selection_patch(document: str, selection: Selection, replacement: str) -> PatchResult:
    """Relocate ``selection`` inside ``document`` and replace it with ``replacement``."""

    if not isinstance(document, str):
        raise TypeError(f"document must be a string, not {type(document).__name__}")
    if not isinstance(selection, Selection):
        raise TypeError(f"selection must be a Selection, not {type(selection).__name__}")

    target = selection.text or ""
    if not target.strip():
        return _failure(document, PatchErrorKind.MALFORMED, "Selection text is empty")
    if not replacement:
        return _failure(document, PatchErrorKind.MALFORMED, "Replacement text is empty", expected=target)

    for strategy, locate in _STRATEGIES:
        span = locate(document, target)
        if span is None:
            continue
        start, end = span
        updated = document[:start] + replacement + document[end:]
        LOGGER.debug(
            "Patch applied via %s match at [%d, %d) (selection hint [%d, %d))",
            strategy.value,
            start,
            end,
            selection.approx_start,
            selection.approx_end,
        )
        return PatchResult(
            text=updated,
            strategy=strategy,
            span=span,
            spans=_compute_spans(document, updated),
            summary=_summarize_patch(document, updated),
        )

    LOGGER.debug("Patch target not found: %r", _preview(target))
    return _failure(document, PatchErrorKind.NOT_FOUND, RESELECT_MESSAGE, expected=target)


def apply_patch(document: str, patch: Patch) -> PatchResult:
    return apply_selection_patch(document, patch.selection, patch.replacement)


def apply_patches_in_order(document: str, patches: Iterable[Patch]) -> BatchPatchResult:
    """Apply ``patches`` serially, back to front, each against the latest text.

    Patches are ordered by their selection's ``approx_start`` descending so an
    edit near the end of the manuscript does not shift the hints of the edits
    before it. A patch that cannot be located is recorded and skipped.
    """

    ordered = sorted(patches, key=lambda item: item.selection.approx_start, reverse=True)
    current = document
    results: list[Tuple[Patch, PatchResult]] = []
    applied = 0
    for patch in ordered:
        result = apply_patch(current, patch)
        results.append((patch, result))
        if result.ok:
            current = result.text
            applied += 1
        else:
            LOGGER.info(
                "Skipping patch %s: %s",
                patch.patch_id or "<anonymous>",
                result.error.kind.value if result.error else "unknown",
            )
    return BatchPatchResult(
        text=current,
        results=tuple(results),
        applied=applied,
        failed=len(results) - applied,
    )


def whitespace_tolerant_pattern(text: str) -> re.Pattern[str]:
    """Compile ``text`` so any internal whitespace run matches ``\\s+``.

    Literal pieces are escaped, so regex metacharacters in user-selected text
    never change the meaning of the pattern.
    """

    pieces = [re.escape(piece) for piece in _WHITESPACE_RE.split(text.strip()) if piece]
    return re.compile(r"\s+".join(pieces))


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text)


def _locate_exact(document: str, target: str) -> Tuple[int, int] | None:
    index = document.find(target)
    if index == -1:
        return None
    return index, index + len(target)


def _locate_normalized(document: str, target: str) -> Tuple[int, int] | None:
    needle = normalize_whitespace(target.strip())
    if needle not in normalize_whitespace(document):
        return None
    match = whitespace_tolerant_pattern(target).search(document)
    if match is None:
        return None
    return match.span()


def _locate_boundary(document: str, target: str) -> Tuple[int, int] | None:
    trimmed = target.strip()
    head = trimmed[:BOUNDARY_ANCHOR_CHARS]
    tail = trimmed[-BOUNDARY_ANCHOR_CHARS:] if len(trimmed) > BOUNDARY_ANCHOR_CHARS else ""

    start = document.find(head)
    if start == -1:
        return None
    if tail:
        tail_index = document.find(tail, start + len(head))
        if tail_index == -1:
            return None
        end = tail_index + len(tail)
    else:
        _, end = clamp_range(start, start + len(target), len(document))
    if end <= start:
        return None
    return start, end


_STRATEGIES: Sequence[tuple[PatchStrategy, Callable[[str, str], Tuple[int, int] | None]]] = (
    (PatchStrategy.EXACT, _locate_exact),
    (PatchStrategy.NORMALIZED, _locate_normalized),
    (PatchStrategy.BOUNDARY, _locate_boundary),
)


def _failure(document: str, kind: PatchErrorKind, message: str, *, expected: str | None = None) -> PatchResult:
    return PatchResult(text=document, error=PatchError(kind=kind, message=message, expected=expected))


def _compute_spans(before: str, after: str) -> Tuple[Tuple[int, int], ...]:
    matcher = SequenceMatcher(a=before, b=after, autojunk=False)
    spans: list[tuple[int, int]] = []
    for tag, _i1, _i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal" or j1 == j2:
            continue
        spans.append((j1, j2))
    return tuple(spans)


def _summarize_patch(before: str, after: str) -> str:
    delta = len(after) - len(before)
    if delta == 0:
        return "patch: length unchanged"
    sign = "+" if delta > 0 else "-"
    return f"patch: {sign}{abs(delta)} chars"


def _preview(text: str, limit: int = 100) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


__all__ = [
    "BOUNDARY_ANCHOR_CHARS",
    "RESELECT_MESSAGE",
    "BatchPatchResult",
    "Patch",
    "PatchApplyError",
    "PatchError",
    "PatchErrorKind",
    "PatchResult",
    "PatchStrategy",
    "apply_patch",
    "apply_patches_in_order",
    "apply_selection_patch",
    "normalize_whitespace",
    "whitespace_tolerant_pattern",
]
