"""Tests for :mod:`lifebook.editor.manuscript`."""

from __future__ import annotations

from lifebook.editor.document_model import ManuscriptState
from lifebook.editor.manuscript import ManuscriptStore
from lifebook.editor.patches import Patch
from lifebook.editor.selection import Selection
from lifebook.events import EventBus, ManuscriptPatched, ManuscriptRestored, PatchFailed


def _store(text: str) -> tuple[ManuscriptStore, list[ManuscriptPatched], list[PatchFailed]]:
    bus: EventBus = EventBus()
    patched: list[ManuscriptPatched] = []
    failed: list[PatchFailed] = []
    bus.subscribe(ManuscriptPatched, patched.append)
    bus.subscribe(PatchFailed, failed.append)
    return ManuscriptStore(ManuscriptState(text=text), event_bus=bus), patched, failed


def test_apply_commits_text_and_bumps_version():
    store, patched, failed = _store("hello world")
    before = store.state.version_signature()

    result = store.apply(Patch(Selection("world", 6, 11), "there", patch_id="p1"))

    assert result.ok
    assert store.text == "hello there"
    assert store.state.version_id == 2
    assert store.state.dirty is True
    assert store.state.version_signature() != before
    assert failed == []
    assert patched[0].patch_id == "p1"
    assert patched[0].strategy == "exact"
    assert patched[0].span == (6, 11)
    assert patched[0].version_id == 2


def test_failed_patch_leaves_text_and_publishes_failure():
    store, patched, failed = _store("hello world")

    result = store.apply(Patch(Selection("galaxy"), "there", patch_id="p2"))

    assert not result.ok
    assert store.text == "hello world"
    assert store.state.version_id == 1
    assert patched == []
    assert failed[0].reason == "not_found"
    assert failed[0].patch_id == "p2"


def test_sequential_patches_apply_against_latest_text():
    store, _patched, _failed = _store("one two three")

    store.apply(Patch(Selection("two", 4, 7), "2"))
    second = store.apply(Patch(Selection("three", 8, 13), "3"))

    assert second.ok
    assert store.text == "one 2 3"


def test_apply_batch_reports_each_patch():
    store, patched, failed = _store("a b c")

    batch = store.apply_batch(
        [
            Patch(Selection("a", 0, 1), "A"),
            Patch(Selection("c", 4, 5), "C"),
            Patch(Selection("z", 2, 3), "Z"),
        ]
    )

    assert store.text == "A b C"
    assert batch.applied == 2
    assert len(patched) == 2
    assert len(failed) == 1
    assert {event.version_id for event in patched} == {store.state.version_id}


def test_context_for_uses_configured_radius():
    store = ManuscriptStore(ManuscriptState(text="0123456789TARGET9876543210"), context_radius=3)

    context = store.context_for(Selection("TARGET"))

    assert context.before == "789"
    assert context.after == "987"


def test_replace_text_and_snapshot():
    store = ManuscriptStore(ManuscriptState(text="draft", title="나의 이야기"))

    store.replace_text("final")
    snapshot = store.state.snapshot()

    assert snapshot["text"] == "final"
    assert snapshot["title"] == "나의 이야기"
    assert snapshot["version_id"] == 2
    assert snapshot["dirty"] is True


def test_state_snapshot_restores_and_save_clears_dirty():
    state = ManuscriptState(text="draft", title="나의 이야기")
    state.revise("second draft")

    restored = ManuscriptState.from_snapshot(state.snapshot())

    assert restored.version_signature() == state.version_signature()
    assert restored.updated_at == state.updated_at
    assert restored.dirty is True
    restored.mark_saved()
    assert restored.dirty is False


def test_undo_and_redo_walk_the_edit_history():
    store, _patched, _failed = _store("hello world")
    restored: list[ManuscriptRestored] = []
    store.event_bus.subscribe(ManuscriptRestored, restored.append)
    assert store.can_undo is False

    store.apply(Patch(Selection("world"), "there", patch_id="p1"))
    store.apply(Patch(Selection("hello"), "goodbye", patch_id="p2"))

    assert [entry.patch_id for entry in store.history] == ["p1", "p2"]
    assert store.undo() is True
    assert store.text == "hello there"
    assert store.undo() is True
    assert store.text == "hello world"
    assert store.can_undo is False
    assert store.undo() is False

    assert store.redo() is True
    assert store.text == "hello there"
    assert store.can_redo is True
    assert [event.direction for event in restored] == ["undo", "undo", "redo"]
    assert restored[-1].action == "patch"


def test_new_patch_after_undo_discards_redo_branch():
    store, _patched, _failed = _store("hello world")
    store.apply(Patch(Selection("world"), "there"))
    store.undo()

    store.apply(Patch(Selection("hello"), "hi"))

    assert store.text == "hi world"
    assert store.can_redo is False
    assert store.redo() is False
    store.undo()
    assert store.text == "hello world"


def test_failed_patch_is_not_recorded_and_batch_undoes_in_one_step():
    store, _patched, _failed = _store("one two three")
    store.apply(Patch(Selection("four"), "x"))
    assert store.can_undo is False

    store.apply_batch([Patch(Selection("one"), "1"), Patch(Selection("three"), "3")])
    assert store.text == "1 two 3"

    store.undo()
    assert store.text == "one two three"


def test_history_is_bounded():
    store = ManuscriptStore(ManuscriptState(text="v0"), max_history=3)
    for index in range(1, 6):
        store.replace_text(f"v{index}")

    undone = 0
    while store.undo():
        undone += 1

    assert undone == 3
    assert store.text == "v2"
