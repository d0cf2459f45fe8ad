"""Chapter heading detection for assembled manuscripts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

# ``제3장: 첫 직장`` or ``Chapter 3: First job`` at the start of a line.
_CHAPTER_HEADING_RE = re.compile(
    r"^(?:제[ \t]*(?P<ko>\d+)[ \t]*장|Chapter[ \t]+(?P<en>\d+))[ \t]*[:.]?[ \t]*(?P<title>.*)$",
    re.IGNORECASE | re.MULTILINE,
)


@dataclass(slots=True, frozen=True)
class Chapter:
    """A chapter slice of the manuscript, heading line included."""

    number: int
    title: str
    start: int
    end: int
    content: str


def format_chapter_heading(number: int, title: str) -> str:
    return f"제{number}장: {title}".rstrip()


def split_into_chapters(text: str) -> List[Chapter]:
    """Split ``text`` on chapter headings.

    Text before the first heading is ignored when headings exist. A manuscript
    without any heading is returned as a single untitled chapter 1.
    """

    matches = list(_CHAPTER_HEADING_RE.finditer(text or ""))
    if not matches:
        return [Chapter(number=1, title="", start=0, end=len(text or ""), content=text or "")]

    chapters: list[Chapter] = []
    for index, match in enumerate(matches):
        start = match.start()
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        number = int(match.group("ko") or match.group("en"))
        chapters.append(
            Chapter(
                number=number,
                title=match.group("title").strip(),
                start=start,
                end=end,
                content=text[start:end].rstrip("\n"),
            )
        )
    return chapters


def chapter_at(text: str, offset: int) -> Chapter | None:
    """Return the chapter containing ``offset`` or ``None`` if it precedes every heading."""

    chapters = split_into_chapters(text)
    for chapter in chapters:
        if chapter.start <= offset < chapter.end:
            return chapter
    if offset == len(text or ""):
        return chapters[-1]
    return None


__all__ = ["Chapter", "chapter_at", "format_chapter_heading", "split_into_chapters"]
