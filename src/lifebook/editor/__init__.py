"""Editor package containing manuscript models, selections and patching."""

from .document_model import ManuscriptState
from .manuscript import HistoryEntry, ManuscriptStore
from .patches import (
    BatchPatchResult,
    Patch,
    PatchApplyError,
    PatchError,
    PatchErrorKind,
    PatchResult,
    PatchStrategy,
    apply_patch,
    apply_patches_in_order,
    apply_selection_patch,
)
from .selection import Selection, SelectionContext, extract_context

__all__ = [
    "BatchPatchResult",
    "HistoryEntry",
    "ManuscriptState",
    "ManuscriptStore",
    "Patch",
    "PatchApplyError",
    "PatchError",
    "PatchErrorKind",
    "PatchResult",
    "PatchStrategy",
    "Selection",
    "SelectionContext",
    "apply_patch",
    "apply_patches_in_order",
    "apply_selection_patch",
    "extract_context",
]
