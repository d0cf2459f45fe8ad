"""Tests for the partial-edit request built on the AI client."""

from __future__ import annotations

from typing import Any

import pytest

from lifebook.ai.partial_edit import SUBMIT_PARTIAL_EDIT_TOOL, request_partial_edit
from lifebook.editor.edit_intent import EditIntent
from lifebook.editor.manuscript import ManuscriptStore
from lifebook.editor.document_model import ManuscriptState
from lifebook.editor.selection import Selection

DOCUMENT = "제1장: 시작\n\n어릴 때 나는 작은 마을에 살았다. 마을 앞에는 강이 흘렀다."


class _StubToolClient:
    def __init__(self, arguments: dict[str, Any]) -> None:
        self.arguments = arguments
        self.calls: list[dict[str, Any]] = []

    async def call_tool(self, messages, tool, *, temperature=None, metadata=None):
        self.calls.append({"messages": list(messages), "tool": tool, "temperature": temperature, "metadata": metadata})
        return dict(self.arguments)


@pytest.mark.asyncio
async def test_request_partial_edit_returns_proposal_and_builds_prompt():
    client = _StubToolClient(
        {
            "modified_text": "  작은 바닷가 마을에서 자랐다  ",
            "edit_summary": "배경을 바닷가로 구체화",
            "change_type": "Content",
        }
    )
    selection = Selection("작은 마을에 살았다", 20, 30)

    proposal = await request_partial_edit(client, DOCUMENT, selection, "좀 더 구체적으로 바꿔 주세요")  # type: ignore[arg-type]

    assert proposal.original_text == "작은 마을에 살았다"
    assert proposal.modified_text == "작은 바닷가 마을에서 자랐다"
    assert proposal.edit_summary == "배경을 바닷가로 구체화"
    assert proposal.change_type == "content"
    assert proposal.intent is EditIntent.EXPAND

    call = client.calls[0]
    assert call["tool"] is SUBMIT_PARTIAL_EDIT_TOOL
    prompt = call["messages"][1]["content"]
    assert "Chapter: 시작" in prompt
    assert "Request type: expand" in prompt
    assert "Selected passage:\n작은 마을에 살았다" in prompt
    assert "Text before the passage:\n제1장: 시작\n\n어릴 때 나는" in prompt
    assert "Text after the passage:\n. 마을 앞에는 강이 흘렀다." in prompt


@pytest.mark.asyncio
async def test_proposal_applies_through_manuscript_store():
    client = _StubToolClient({"modified_text": "작은 바닷가 마을에서 자랐다", "edit_summary": "", "change_type": "style"})
    store = ManuscriptStore(ManuscriptState(text=DOCUMENT))
    selection = Selection("작은 마을에 살았다", 20, 30)

    proposal = await request_partial_edit(client, store.text, selection, "문장을 수정해 주세요")  # type: ignore[arg-type]
    result = store.apply(proposal.to_patch("edit-1"))

    assert result.ok
    assert store.text == "제1장: 시작\n\n어릴 때 나는 작은 바닷가 마을에서 자랐다. 마을 앞에는 강이 흘렀다."


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("selected", "instruction"),
    [("", "고쳐 주세요"), ("   ", "고쳐 주세요"), ("작은 마을", ""), ("작은 마을", "  ")],
)
async def test_blank_inputs_are_rejected_before_any_request(selected: str, instruction: str):
    client = _StubToolClient({"modified_text": "x"})

    with pytest.raises(ValueError):
        await request_partial_edit(client, DOCUMENT, Selection(selected), instruction)  # type: ignore[arg-type]

    assert client.calls == []


@pytest.mark.asyncio
async def test_empty_rewrite_is_rejected():
    client = _StubToolClient({"modified_text": "   ", "edit_summary": "nothing"})

    with pytest.raises(ValueError):
        await request_partial_edit(client, DOCUMENT, Selection("작은 마을"), "고쳐 주세요")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_unknown_change_type_is_recorded_as_content():
    client = _StubToolClient({"modified_text": "새 문장", "change_type": "rewrite"})

    proposal = await request_partial_edit(client, DOCUMENT, Selection("작은 마을"), "고쳐 주세요")  # type: ignore[arg-type]

    assert proposal.change_type == "content"
    assert proposal.intent is EditIntent.GENERAL
