"""Conversation log holding the interview turns in order."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

from ..events import EventBus, TurnRecorded
from .models import ConversationTurn

LOGGER = logging.getLogger(__name__)


class TurnFrozenError(RuntimeError):
    """Raised when an already answered turn would be changed."""


class ConversationLog:
    """Ordered interview turns.

    Questions are appended as open turns; recording an answer closes the turn.
    An answered turn is never modified again.

    Events Emitted:
        - TurnRecorded: after a question is asked or an answer is recorded
    """

    def __init__(
        self,
        turns: Sequence[ConversationTurn] = (),
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._turns: List[ConversationTurn] = list(turns)
        self._bus = event_bus or EventBus()

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def pending(self) -> ConversationTurn | None:
        """The trailing unanswered turn, if any."""

        if self._turns and not self._turns[-1].answered:
            return self._turns[-1]
        return None

    def ask(self, question: str, *, topic_tag: str | None = None) -> ConversationTurn:
        question = (question or "").strip()
        if not question:
            raise ValueError("Question must not be empty")
        turn = ConversationTurn(question=question, topic_tag=topic_tag)
        self._turns.append(turn)
        self._publish(len(self._turns) - 1, turn)
        return turn

    def record_answer(self, answer: str, *, index: int | None = None) -> ConversationTurn:
        """Attach ``answer`` to the turn at ``index`` (default: the last turn).

        Raises:
            ValueError: when ``answer`` is blank.
            TurnFrozenError: when the turn already holds an answer.
        """

        if not answer or not answer.strip():
            raise ValueError("Answer must not be empty")
        if not self._turns:
            raise IndexError("No question has been asked yet")
        position = len(self._turns) - 1 if index is None else index
        if position < 0:
            position += len(self._turns)
        if not 0 <= position < len(self._turns):
            raise IndexError(f"Turn index {index} is out of range")

        current = self._turns[position]
        if current.answer is not None:
            raise TurnFrozenError(f"Turn {position} has already been answered")
        updated = current.with_answer(answer)
        self._turns[position] = updated
        self._publish(position, updated)
        return updated

    def recent(self, count: int) -> List[ConversationTurn]:
        """Return at most the last ``count`` turns, oldest first."""

        if count <= 0:
            return []
        return list(self._turns[-count:])

    def snapshot(self) -> Dict[str, Any]:
        return {"turns": [turn.to_dict() for turn in self._turns]}

    @classmethod
    def from_snapshot(
        cls,
        payload: Mapping[str, Any],
        *,
        event_bus: EventBus | None = None,
    ) -> "ConversationLog":
        raw_turns = payload.get("turns", [])
        if not isinstance(raw_turns, list):
            raise TypeError("Snapshot 'turns' must be a list")
        turns = [ConversationTurn.from_dict(entry) for entry in raw_turns if isinstance(entry, Mapping)]
        skipped = len(raw_turns) - len(turns)
        if skipped:
            LOGGER.warning("Ignored %d malformed turn(s) in conversation snapshot", skipped)
        return cls(turns, event_bus=event_bus)

    def _publish(self, index: int, turn: ConversationTurn) -> None:
        self._bus.publish(TurnRecorded(index=index, question=turn.question, answered=turn.answered))


__all__ = ["ConversationLog", "TurnFrozenError"]
