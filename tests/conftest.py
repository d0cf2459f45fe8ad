"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any, Callable, Sequence

import pytest

from lifebook.conversation.models import ConversationTurn


@pytest.fixture(autouse=True)
def _isolate_lifebook_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in (
        "LIFEBOOK_API_KEY",
        "LIFEBOOK_BASE_URL",
        "LIFEBOOK_MODEL",
        "LIFEBOOK_ORGANIZATION",
        "LIFEBOOK_DEBUG",
        "LIFEBOOK_DEBUG_LOGGING",
        "LIFEBOOK_REQUEST_TIMEOUT",
        "LIFEBOOK_TEMPERATURE",
        "LIFEBOOK_CONTEXT_RADIUS",
        "LIFEBOOK_FLOW_WINDOW",
        "LIFEBOOK_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LIFEBOOK_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def make_turns() -> Callable[..., list[ConversationTurn]]:
    """Build turns from ``(question, answer)`` pairs with fixed timestamps."""

    def _build(pairs: Sequence[tuple[str, Any]]) -> list[ConversationTurn]:
        return [
            ConversationTurn(question=question, answer=answer, timestamp=f"2024-01-01T00:00:{index:02d}+00:00")
            for index, (question, answer) in enumerate(pairs)
        ]

    return _build
