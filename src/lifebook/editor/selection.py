"""Selection snapshots captured from the manuscript view and context helpers."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_CONTEXT_RADIUS = 500


@dataclass(slots=True, frozen=True)
class Selection:
    """Text the user highlighted plus its last-known offsets.

    The offsets are a hint only: the manuscript may have changed between the
    moment the user selected the passage and the moment an edit comes back.
    """

    text: str
    approx_start: int = 0
    approx_end: int = 0

    def offsets_match(self, document: str) -> bool:
        """Return ``True`` when the recorded offsets still frame ``text``."""

        start, end = self.clamped(len(document))
        return bool(self.text) and document[start:end] == self.text

    def clamped(self, length: int) -> tuple[int, int]:
        return clamp_range(self.approx_start, self.approx_end, length)

    def as_tuple(self) -> tuple[int, int]:
        return (self.approx_start, self.approx_end)


@dataclass(slots=True, frozen=True)
class SelectionContext:
    """Text immediately surrounding a selection, used to build prompts."""

    before: str = ""
    after: str = ""

    @property
    def empty(self) -> bool:
        return not self.before and not self.after


def clamp_range(start: int, end: int, length: int) -> tuple[int, int]:
    start = max(0, min(int(start), length))
    end = max(0, min(int(end), length))
    if end < start:
        start, end = end, start
    return start, end


def extract_context(
    document: str,
    selection: Selection | str,
    radius: int = DEFAULT_CONTEXT_RADIUS,
) -> SelectionContext:
    """Return up to ``radius`` characters before and after the selection.

    The first occurrence of the selected text is used. When the text cannot be
    found (or either input is empty) an empty context is returned instead of
    raising.
    """

    text = selection.text if isinstance(selection, Selection) else selection
    if not document or not text:
        return SelectionContext()
    index = document.find(text)
    if index == -1:
        return SelectionContext()

    radius = max(0, int(radius))
    length = len(document)
    end_of_match = index + len(text)
    start = max(0, index - radius)
    stop = min(length, end_of_match + radius)
    return SelectionContext(
        before=document[start:index].strip(),
        after=document[end_of_match:stop].strip(),
    )


__all__ = [
    "DEFAULT_CONTEXT_RADIUS",
    "Selection",
    "SelectionContext",
    "clamp_range",
    "extract_context",
]
