"""Keyword classification of free-text edit instructions."""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Sequence


class EditIntent(str, Enum):
    EXPAND = "expand"
    CONDENSE = "condense"
    EMOTIONAL = "emotional"
    MODIFY = "modify"
    GENERAL = "general"


# Checked in order; the first intent with a matching cue wins.
INTENT_CUES: Mapping[EditIntent, Sequence[str]] = {
    EditIntent.EXPAND: ("자세히", "구체적", "확장", "expand", "more detail", "elaborate"),
    EditIntent.CONDENSE: ("간단히", "줄여", "축약", "shorten", "condense", "shorter"),
    EditIntent.EMOTIONAL: ("감성적", "감동적", "문학적", "emotional", "moving", "literary"),
    EditIntent.MODIFY: ("수정", "바꿔", "변경", "change", "rewrite", "fix"),
}


def classify_edit_request(instruction: str) -> EditIntent:
    lowered = (instruction or "").lower()
    for intent, cues in INTENT_CUES.items():
        if any(cue in lowered for cue in cues):
            return intent
    return EditIntent.GENERAL


__all__ = ["EditIntent", "INTENT_CUES", "classify_edit_request"]
