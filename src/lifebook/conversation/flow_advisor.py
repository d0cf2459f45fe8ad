"""Heuristic follow-up versus topic-transition decision.

The advisor looks at a short window of recent turns and answers one question:
should the next interview question stay on the current topic or move on? It is
the always-available fallback for the LLM-backed analysis in
:mod:`lifebook.conversation.flow_analysis`, so it never raises and never
performs I/O.

The gate is deliberately two-factor. A *required* condition (a long streak on
one topic, or a sharp drop in answer length) must hold, and at least one
*additional* signal must agree before a transition is recommended.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Sequence

from .models import (
    ConversationTurn,
    EngagementAnalysis,
    EngagementLevel,
    FlowDecision,
    LengthAnalysis,
    LengthTrend,
    TransitionReason,
)
from .topics import count_consecutive_same_topic, identify_current_topic

LOGGER = logging.getLogger(__name__)

EMOTION_KEYWORDS: tuple[str, ...] = ("기뻤", "슬펐", "화났", "놀랐", "감동", "기억에 남", "인상적", "소중한")
DISMISSIVE_FILLERS: tuple[str, ...] = ("그냥", "별로")
SPECIFIC_DETAIL_RE = re.compile(r"\d{4}년|\d+살|그때|당시|어릴때")


@dataclass(slots=True, frozen=True)
class FlowThresholds:
    """Tunable constants for the advisor.

    These values were chosen empirically; none of them is derived from a
    model of the conversation.
    """

    consecutive_limit: int = 6
    trend_change_percent: float = 40.0
    significant_decline_percent: float = 60.0
    low_engagement_below: float = 0.5
    high_engagement_above: float = 1.5
    engagement_window: int = 3
    detailed_answer_chars: int = 100
    short_answer_chars: int = 20
    emotion_keywords: tuple[str, ...] = field(default=EMOTION_KEYWORDS)
    dismissive_fillers: tuple[str, ...] = field(default=DISMISSIVE_FILLERS)


class FlowAdvisor:
    """Decide whether the next question should follow up or change topic."""

    def __init__(self, thresholds: FlowThresholds | None = None) -> None:
        self.thresholds = thresholds or FlowThresholds()

    def decide(self, recent_turns: Sequence[ConversationTurn]) -> FlowDecision:
        turns = list(recent_turns or ())
        if not turns:
            return FlowDecision(
                should_transition=False,
                reason=TransitionReason.CONTINUE,
                consecutive_same_topic_count=0,
                engagement_level=EngagementLevel.LOW,
            )

        topic = identify_current_topic(turns)
        consecutive = count_consecutive_same_topic(turns, topic)
        length = self.analyze_length_trend(turns)
        engagement = self.analyze_engagement(turns)
        should_transition = self._should_transition(consecutive, length, engagement)
        reason = self._reason(consecutive, length, engagement)

        LOGGER.debug(
            "Flow decision: topic=%s streak=%d trend=%s (%d%%) engagement=%s (%.1f) -> %s/%s",
            topic,
            consecutive,
            length.trend.value,
            length.change_percent,
            engagement.level.value,
            engagement.score,
            "transition" if should_transition else "followup",
            reason.value,
        )
        return FlowDecision(
            should_transition=should_transition,
            reason=reason,
            consecutive_same_topic_count=consecutive,
            engagement_level=engagement.level,
            current_topic=topic,
            length_trend=length.trend,
            change_percent=length.change_percent,
            engagement_score=engagement.score,
        )

    def analyze_length_trend(self, turns: Sequence[ConversationTurn]) -> LengthAnalysis:
        lengths = [len(turn.answer.strip()) for turn in turns if turn.answered and turn.answer]
        if len(lengths) < 2:
            return LengthAnalysis(current_length=lengths[0] if lengths else 0)

        current, previous = lengths[-1], lengths[-2]
        change = 0.0 if previous == 0 else (current - previous) / previous * 100
        limit = self.thresholds.trend_change_percent
        trend = LengthTrend.STABLE
        if change < -limit:
            trend = LengthTrend.DECLINING
        elif change > limit:
            trend = LengthTrend.INCREASING
        return LengthAnalysis(
            trend=trend,
            current_length=current,
            previous_length=previous,
            change_percent=_round_half_up(change),
        )

    def analyze_engagement(self, turns: Sequence[ConversationTurn]) -> EngagementAnalysis:
        t = self.thresholds
        answers = [turn.answer for turn in turns if turn.answered and turn.answer]
        answers = answers[-t.engagement_window:] if t.engagement_window > 0 else []
        if not answers:
            return EngagementAnalysis(level=EngagementLevel.LOW, score=0.0)

        total = sum(self._score_answer(answer) for answer in answers)
        average = total / len(answers)
        level = EngagementLevel.MEDIUM
        if average < t.low_engagement_below:
            level = EngagementLevel.LOW
        elif average > t.high_engagement_above:
            level = EngagementLevel.HIGH
        return EngagementAnalysis(level=level, score=_round_half_up(average * 10) / 10)

    def _score_answer(self, answer: str) -> int:
        t = self.thresholds
        score = 0
        if len(answer) > t.detailed_answer_chars:
            score += 1
        if any(keyword in answer for keyword in t.emotion_keywords):
            score += 1
        if SPECIFIC_DETAIL_RE.search(answer):
            score += 1
        if len(answer) < t.short_answer_chars or any(filler in answer for filler in t.dismissive_fillers):
            score -= 1
        return score

    def _should_transition(
        self,
        consecutive: int,
        length: LengthAnalysis,
        engagement: EngagementAnalysis,
    ) -> bool:
        t = self.thresholds
        long_streak = consecutive >= t.consecutive_limit
        declining = length.trend is LengthTrend.DECLINING
        sharp_decline = declining and length.change_percent < -t.significant_decline_percent
        if not (long_streak or sharp_decline):
            return False

        additional = 0
        if engagement.level is EngagementLevel.LOW:
            additional += 1
        if declining and length.change_percent < -t.trend_change_percent:
            additional += 1
        if long_streak and engagement.level is not EngagementLevel.HIGH:
            additional += 1
        return additional >= 1

    def _reason(
        self,
        consecutive: int,
        length: LengthAnalysis,
        engagement: EngagementAnalysis,
    ) -> TransitionReason:
        t = self.thresholds
        long_streak = consecutive >= t.consecutive_limit
        low = engagement.level is EngagementLevel.LOW
        declining = length.trend is LengthTrend.DECLINING
        if long_streak and low:
            return TransitionReason.TOO_MANY_CONSECUTIVE_WITH_LOW_ENGAGEMENT
        if declining and length.change_percent < -t.significant_decline_percent:
            return TransitionReason.SIGNIFICANT_DECLINE
        if long_streak:
            return TransitionReason.TOO_MANY_CONSECUTIVE
        if low and declining:
            return TransitionReason.MULTIPLE_FACTORS
        return TransitionReason.CONTINUE


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


__all__ = [
    "DISMISSIVE_FILLERS",
    "EMOTION_KEYWORDS",
    "FlowAdvisor",
    "FlowThresholds",
]
