"""Tests covering the command line entry point."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import pytest

from lifebook import app
from lifebook.ai.expansion_questions import ExpansionQuestions
from lifebook.ai.partial_edit import PartialEditProposal
from lifebook.editor.selection import Selection
from lifebook.services.settings import FlowThresholdSettings, Settings, SettingsStore


@pytest.fixture(autouse=True)
def _no_log_files(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app.logging_utils, "setup_logging", lambda *args, **kwargs: None)


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "settings.json"


def _write_turns(path: Path, pairs: list[tuple[str, str]]) -> Path:
    path.write_text(
        json.dumps([{"question": question, "answer": answer} for question, answer in pairs], ensure_ascii=False),
        encoding="utf-8",
    )
    return path


def test_coerce_cli_overrides_casts_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "temperature=0.5",
            "debug_logging=yes",
            "flow_window=10",
            'flow={"consecutive_limit": 4}',
        ]
    )

    assert overrides == {
        "temperature": 0.5,
        "debug_logging": True,
        "flow_window": 10,
        "flow": {"consecutive_limit": 4},
    }


def test_coerce_cli_overrides_rejects_unknown_field() -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["not_a_field=1"])


def test_dump_settings_redacts_api_key(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    buffer = io.StringIO()

    app._dump_settings(Settings(api_key="sk-123456"), store, overrides={"model": "x"}, stream=buffer)

    payload = json.loads(buffer.getvalue())
    assert payload["settings"]["api_key"] == "sk*****56"
    assert payload["meta"]["cli_overrides"] == ["model"]
    assert payload["meta"]["path"] == str(store.path)


def test_patch_command_prints_patched_document(tmp_path: Path, settings_path: Path, capsys) -> None:
    document = tmp_path / "manuscript.txt"
    document.write_text("제1장: 시작\n\n어릴 때 나는 작은 마을에 살았다.", encoding="utf-8")

    code = app.main(
        [
            "--settings-path",
            str(settings_path),
            "patch",
            str(document),
            "--selection",
            "작은 마을에 살았다",
            "--start",
            "20",
            "--replacement",
            "작은 바닷가 마을에서 자랐다",
        ]
    )

    assert code == 0
    assert capsys.readouterr().out == "제1장: 시작\n\n어릴 때 나는 작은 바닷가 마을에서 자랐다."


def test_patch_command_in_place_and_failure(tmp_path: Path, settings_path: Path, capsys) -> None:
    document = tmp_path / "manuscript.txt"
    document.write_text("hello world", encoding="utf-8")
    base = ["--settings-path", str(settings_path), "patch", str(document)]

    assert app.main([*base, "--selection", "world", "--replacement", "there", "--in-place"]) == 0
    assert document.read_text(encoding="utf-8") == "hello there"

    assert app.main([*base, "--selection", "galaxy", "--replacement", "x"]) == 1
    assert "reselect" in capsys.readouterr().err
    assert document.read_text(encoding="utf-8") == "hello there"


def test_advise_command_prints_decision_json(tmp_path: Path, settings_path: Path, capsys) -> None:
    turns = _write_turns(
        tmp_path / "turns.json",
        [
            ("어머니는 어떤 분이셨나요?", "네 그랬어요"),
            ("아버지와의 추억을 들려주세요.", "네 그랬어요"),
            ("형제 사이는 어땠나요?", "네 그랬어요"),
        ],
    )
    SettingsStore(settings_path).save(Settings(flow=FlowThresholdSettings(consecutive_limit=3)))

    code = app.main(["--settings-path", str(settings_path), "advise", str(turns)])

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["should_transition"] is True
    assert output["reason"] == "consecutive_questions_with_low_engagement"
    assert output["next_strategy"] == "transition"
    assert output["source"] == "heuristic"


def test_advise_command_applies_flow_window(tmp_path: Path, settings_path: Path, capsys) -> None:
    pairs = [("어머니는 어떤 분이셨나요?", "네 그랬어요")] * 6
    turns = _write_turns(tmp_path / "turns.json", pairs)

    code = app.main(["--settings-path", str(settings_path), "--set", "flow_window=5", "advise", str(turns)])

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["consecutive_same_topic_count"] == 5
    assert output["should_transition"] is False


def test_advise_command_rejects_unreadable_turns(tmp_path: Path, settings_path: Path, capsys) -> None:
    broken = tmp_path / "turns.json"
    broken.write_text("{oops", encoding="utf-8")

    assert app.main(["--settings-path", str(settings_path), "advise", str(broken)]) == 2
    assert "Unable to read turns" in capsys.readouterr().err


def test_invalid_override_exits_with_usage_error(settings_path: Path, capsys) -> None:
    assert app.main(["--settings-path", str(settings_path), "--set", "oops", "--dump-settings"]) == 2
    assert "Invalid --set override" in capsys.readouterr().err


def test_edit_command_requires_api_key(tmp_path: Path, settings_path: Path, capsys) -> None:
    document = tmp_path / "manuscript.txt"
    document.write_text("hello world", encoding="utf-8")

    code = app.main(
        ["--settings-path", str(settings_path), "edit", str(document), "--selection", "world", "--instruction", "fix"]
    )

    assert code == 2
    assert "API key" in capsys.readouterr().err


def test_edit_command_applies_proposal(
    tmp_path: Path, settings_path: Path, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    document = tmp_path / "manuscript.txt"
    document.write_text("hello world", encoding="utf-8")
    captured: dict[str, Any] = {}

    class _StubAIClient:
        def __init__(self, settings: Any) -> None:
            captured["settings"] = settings

        async def aclose(self) -> None:
            captured["closed"] = True

    async def _fake_request(client, text, selection: Selection, instruction, **kwargs):
        captured["kwargs"] = kwargs
        return PartialEditProposal(selection=selection, modified_text="there", instruction=instruction)

    monkeypatch.setattr(app, "AIClient", _StubAIClient)
    monkeypatch.setattr(app, "request_partial_edit", _fake_request)

    code = app.main(
        [
            "--settings-path",
            str(settings_path),
            "--set",
            "api_key=test-key",
            "edit",
            str(document),
            "--selection",
            "world",
            "--instruction",
            "fix",
            "--apply",
        ]
    )

    assert code == 0
    assert capsys.readouterr().out == "hello there"
    assert captured["settings"].api_key == "test-key"
    assert captured["closed"] is True
    assert captured["kwargs"]["context_radius"] == 500


def test_questions_command_requires_api_key(tmp_path: Path, settings_path: Path, capsys) -> None:
    document = tmp_path / "manuscript.txt"
    document.write_text("hello world", encoding="utf-8")

    code = app.main(["--settings-path", str(settings_path), "questions", str(document), "--selection", "world"])

    assert code == 2
    assert "API key" in capsys.readouterr().err


def test_questions_command_prints_questions_json(
    tmp_path: Path, settings_path: Path, capsys, monkeypatch: pytest.MonkeyPatch
) -> None:
    document = tmp_path / "manuscript.txt"
    document.write_text("어릴 때 나는 작은 마을에 살았다.", encoding="utf-8")
    captured: dict[str, Any] = {}

    class _StubAIClient:
        def __init__(self, settings: Any) -> None:
            captured["settings"] = settings

        async def aclose(self) -> None:
            captured["closed"] = True

    async def _fake_request(client, text, selection: Selection, **kwargs):
        captured["selection"] = selection
        captured["kwargs"] = kwargs
        return ExpansionQuestions(selection=selection, questions=("그 마을에서 누구와 함께 지냈나요?",))

    monkeypatch.setattr(app, "AIClient", _StubAIClient)
    monkeypatch.setattr(app, "request_expansion_questions", _fake_request)

    code = app.main(
        [
            "--settings-path",
            str(settings_path),
            "--set",
            "api_key=test-key",
            "--set",
            "temperature=0.3",
            "questions",
            str(document),
            "--selection",
            "작은 마을에 살았다",
            "--start",
            "8",
        ]
    )

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["selected_text"] == "작은 마을에 살았다"
    assert payload["questions"] == [{"question": "그 마을에서 누구와 함께 지냈나요?", "focus": "relationship"}]
    assert captured["selection"].approx_start == 8
    assert captured["kwargs"] == {"context_radius": 500, "temperature": 0.3}
    assert captured["closed"] is True
