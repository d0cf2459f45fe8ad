"""Dataclasses describing interview turns and next-question decisions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TransitionReason(str, Enum):
    TOO_MANY_CONSECUTIVE_WITH_LOW_ENGAGEMENT = "consecutive_questions_with_low_engagement"
    SIGNIFICANT_DECLINE = "significant_response_decline"
    TOO_MANY_CONSECUTIVE = "too_many_consecutive_questions"
    MULTIPLE_FACTORS = "multiple_decline_indicators"
    LOW_ENGAGEMENT = "low_engagement"
    CONTINUE = "continue_current_topic"

    @classmethod
    def coerce(cls, value: Any) -> "TransitionReason | None":
        """Map enum names, values and the short aliases analyses use onto a reason."""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip()
        if not key:
            return None
        if key.upper() in cls.__members__:
            return cls[key.upper()]
        lowered = key.lower()
        for member in cls:
            if member.value == lowered:
                return member
        return _REASON_ALIASES.get(lowered)


_REASON_ALIASES: Mapping[str, TransitionReason] = {
    "too_many_consecutive": TransitionReason.TOO_MANY_CONSECUTIVE,
    "response_length_drop": TransitionReason.SIGNIFICANT_DECLINE,
    "multiple_factors": TransitionReason.MULTIPLE_FACTORS,
    "continue": TransitionReason.CONTINUE,
    "first_question": TransitionReason.CONTINUE,
}


class EngagementLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LengthTrend(str, Enum):
    DECLINING = "declining"
    STABLE = "stable"
    INCREASING = "increasing"


@dataclass(slots=True, frozen=True)
class ConversationTurn:
    """One interview question and, once given, the user's answer."""

    question: str
    answer: str | None = None
    timestamp: str = ""
    topic_tag: str | None = None

    def __post_init__(self) -> None:
        if not self.timestamp:
            object.__setattr__(self, "timestamp", _utcnow_iso())

    @property
    def answered(self) -> bool:
        return bool(self.answer and self.answer.strip())

    def with_answer(self, answer: str) -> "ConversationTurn":
        return replace(self, answer=answer)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "answer": self.answer,
            "timestamp": self.timestamp,
            "topic_tag": self.topic_tag,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ConversationTurn":
        answer = payload.get("answer")
        topic = payload.get("topic_tag", payload.get("topicTag"))
        return cls(
            question=str(payload.get("question") or ""),
            answer=None if answer is None else str(answer),
            timestamp=str(payload.get("timestamp") or ""),
            topic_tag=None if topic is None else str(topic),
        )


@dataclass(slots=True, frozen=True)
class LengthAnalysis:
    trend: LengthTrend = LengthTrend.STABLE
    current_length: int = 0
    previous_length: int | None = None
    change_percent: int = 0


@dataclass(slots=True, frozen=True)
class EngagementAnalysis:
    level: EngagementLevel = EngagementLevel.LOW
    score: float = 0.0


@dataclass(slots=True, frozen=True)
class FlowDecision:
    """Whether the next question should change topic, and why."""

    should_transition: bool
    reason: TransitionReason
    consecutive_same_topic_count: int
    engagement_level: EngagementLevel
    current_topic: str = "unknown"
    length_trend: LengthTrend = LengthTrend.STABLE
    change_percent: int = 0
    engagement_score: float = 0.0
    source: str = "heuristic"

    @property
    def next_strategy(self) -> str:
        return "transition" if self.should_transition else "followup"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "should_transition": self.should_transition,
            "reason": self.reason.value,
            "consecutive_same_topic_count": self.consecutive_same_topic_count,
            "engagement_level": self.engagement_level.value,
            "current_topic": self.current_topic,
            "length_trend": self.length_trend.value,
            "change_percent": self.change_percent,
            "engagement_score": self.engagement_score,
            "source": self.source,
            "next_strategy": self.next_strategy,
        }


__all__ = [
    "ConversationTurn",
    "EngagementAnalysis",
    "EngagementLevel",
    "FlowDecision",
    "LengthAnalysis",
    "LengthTrend",
    "TransitionReason",
]
