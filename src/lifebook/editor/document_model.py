"""Versioned manuscript state."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping


def _now() -> datetime:
    return datetime.now(timezone.utc)


def content_hash(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class ManuscriptState:
    """Manuscript text plus the bookkeeping needed to detect stale edits.

    ``version_id`` increases by one on every committed change. A caller that
    captured :meth:`version_signature` before asking the model for a rewrite can
    compare it afterwards to learn whether the text moved underneath it.
    """

    text: str = ""
    title: str = ""
    dirty: bool = False
    manuscript_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    version_id: int = 1
    content_hash: str = ""
    updated_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if not self.content_hash:
            self.content_hash = content_hash(self.text)

    def revise(self, new_text: str) -> None:
        self.text = new_text
        self.content_hash = content_hash(new_text)
        self.version_id += 1
        self.dirty = True
        self.updated_at = _now()

    def mark_saved(self) -> None:
        self.dirty = False

    def version_signature(self) -> str:
        return f"{self.manuscript_id}:{self.version_id}:{self.content_hash}"

    def snapshot(self) -> Dict[str, Any]:
        return {
            "manuscript_id": self.manuscript_id,
            "title": self.title,
            "text": self.text,
            "version_id": self.version_id,
            "content_hash": self.content_hash,
            "dirty": self.dirty,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_snapshot(cls, payload: Mapping[str, Any]) -> "ManuscriptState":
        """Rebuild state saved by :meth:`snapshot`; the hash is recomputed."""

        updated = payload.get("updated_at")
        return cls(
            text=str(payload.get("text", "")),
            title=str(payload.get("title", "")),
            dirty=bool(payload.get("dirty", False)),
            manuscript_id=str(payload.get("manuscript_id") or uuid.uuid4().hex),
            version_id=int(payload.get("version_id", 1)),
            updated_at=datetime.fromisoformat(updated) if isinstance(updated, str) else _now(),
        )


__all__ = ["ManuscriptState", "content_hash"]
