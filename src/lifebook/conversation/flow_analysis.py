"""LLM-backed flow analysis with the heuristic advisor as fallback.

An external analysis (normally a forced function call against a chat model)
may override the heuristic :class:`~lifebook.conversation.flow_advisor.FlowAdvisor`
decision. Whenever the analysis is unavailable, fails, or returns something
that cannot be read as a decision, the heuristic decision is used instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Mapping, Protocol, Sequence

from ..events import EventBus, FlowDecided
from .flow_advisor import FlowAdvisor
from .models import ConversationTurn, EngagementLevel, FlowDecision, TransitionReason
from .topics import count_consecutive_same_topic, identify_current_topic

if TYPE_CHECKING:  # pragma: no cover
    from ..ai.client import AIClient

LOGGER = logging.getLogger(__name__)

ANALYZE_FLOW_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "analyze_conversation_flow",
        "description": (
            "Analyze the interview flow: write an empathetic reply to the latest answer and decide "
            "whether the next question should follow up or transition to a new topic."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "empathy_response": {
                    "type": "string",
                    "description": "Immediate empathetic reply to the interviewee's latest answer.",
                },
                "should_transition": {
                    "type": "boolean",
                    "description": "Whether the next question should move to a new topic.",
                },
                "transition_reason": {
                    "type": "string",
                    "description": "Concrete reason for the decision.",
                },
                "next_agent_type": {
                    "type": "string",
                    "enum": ["followup", "transition"],
                    "description": "Question strategy to use next.",
                },
                "analysis_details": {
                    "type": "object",
                    "properties": {
                        "consecutive_questions": {"type": "number"},
                        "emotional_engagement": {"type": "string", "enum": ["low", "medium", "high"]},
                        "exploration_depth": {"type": "string"},
                        "recommended_focus": {"type": "string"},
                    },
                    "description": "Detailed analysis results.",
                },
            },
            "required": [
                "empathy_response",
                "should_transition",
                "transition_reason",
                "next_agent_type",
                "analysis_details",
            ],
        },
    },
}

_ENGAGEMENT_ALIASES: Mapping[str, EngagementLevel] = {
    "low": EngagementLevel.LOW,
    "medium": EngagementLevel.MEDIUM,
    "moderate": EngagementLevel.MEDIUM,
    "high": EngagementLevel.HIGH,
    "낮음": EngagementLevel.LOW,
    "보통": EngagementLevel.MEDIUM,
    "높음": EngagementLevel.HIGH,
}


class FlowAnalysisError(ValueError):
    """Raised when an external analysis cannot be read as a flow decision."""


class FlowAnalyzer(Protocol):
    """Anything that can produce a structured flow analysis for recent turns."""

    async def analyze(self, turns: Sequence[ConversationTurn]) -> Mapping[str, Any]:
        ...


@dataclass(slots=True)
class FlowResolution:
    """The decision to act on plus what produced it."""

    decision: FlowDecision
    heuristic: FlowDecision
    empathy_response: str = ""
    explanation: str = ""
    fallback_used: bool = False
    analysis: Mapping[str, Any] = field(default_factory=dict)


def decision_from_analysis(payload: Any, fallback: FlowDecision) -> FlowDecision:
    """Translate an analysis payload into a :class:`FlowDecision`.

    Fields the analysis does not provide are taken from ``fallback``.
    """

    if not isinstance(payload, Mapping):
        raise FlowAnalysisError(f"Analysis payload must be a mapping, not {type(payload).__name__}")

    should_transition = _read_should_transition(payload)
    reason = TransitionReason.coerce(_first(payload, "transition_reason", "transitionReason", "reason"))
    if should_transition and reason is TransitionReason.CONTINUE:
        LOGGER.debug("Analysis recommends a transition with reason %s; using a transition reason", reason.value)
        reason = None
    if reason is None:
        if not should_transition:
            reason = TransitionReason.CONTINUE
        elif fallback.reason is not TransitionReason.CONTINUE:
            reason = fallback.reason
        else:
            reason = TransitionReason.MULTIPLE_FACTORS

    details = _first(payload, "analysis_details", "analysisDetails")
    details = details if isinstance(details, Mapping) else {}
    consecutive = _read_int(_first(details, "consecutive_questions", "consecutiveQuestions"))
    engagement = _read_engagement(_first(details, "emotional_engagement", "emotionalEngagement"))

    return replace(
        fallback,
        should_transition=should_transition,
        reason=reason,
        consecutive_same_topic_count=(
            consecutive if consecutive is not None else fallback.consecutive_same_topic_count
        ),
        engagement_level=engagement or fallback.engagement_level,
        source="analysis",
    )


async def resolve_flow_decision(
    turns: Sequence[ConversationTurn],
    analyzer: FlowAnalyzer | None = None,
    *,
    advisor: FlowAdvisor | None = None,
    event_bus: EventBus | None = None,
) -> FlowResolution:
    """Decide the next-question strategy, preferring ``analyzer`` when it succeeds."""

    heuristic = (advisor or FlowAdvisor()).decide(turns)
    resolution = FlowResolution(decision=heuristic, heuristic=heuristic)

    if analyzer is not None:
        try:
            payload = await analyzer.analyze(turns)
            decision = decision_from_analysis(payload, heuristic)
        except Exception as exc:
            LOGGER.warning("Flow analysis failed; using heuristic decision: %s", exc)
            resolution.fallback_used = True
        else:
            resolution = FlowResolution(
                decision=decision,
                heuristic=heuristic,
                empathy_response=str(_first(payload, "empathy_response", "empathyResponse") or "").strip(),
                explanation=str(_first(payload, "transition_reason", "transitionReason") or "").strip(),
                analysis=dict(payload),
            )

    decision = resolution.decision
    LOGGER.info(
        "Next question strategy: %s (%s, source=%s)",
        decision.next_strategy,
        decision.reason.value,
        decision.source,
    )
    if event_bus is not None:
        event_bus.publish(
            FlowDecided(
                should_transition=decision.should_transition,
                reason=decision.reason.value,
                source=decision.source,
            )
        )
    return resolution


class LLMFlowAnalyzer:
    """:class:`FlowAnalyzer` backed by a forced ``analyze_conversation_flow`` call."""

    def __init__(self, client: AIClient, *, project_title: str = "", temperature: float | None = 0.3) -> None:
        self._client = client
        self._project_title = project_title
        self._temperature = temperature

    async def analyze(self, turns: Sequence[ConversationTurn]) -> Mapping[str, Any]:
        from ..ai.prompts import flow_analysis_system_prompt, flow_analysis_user_prompt

        topic = identify_current_topic(turns)
        messages = [
            {"role": "system", "content": flow_analysis_system_prompt()},
            {
                "role": "user",
                "content": flow_analysis_user_prompt(
                    turns,
                    current_topic=topic,
                    consecutive_count=count_consecutive_same_topic(turns, topic),
                    project_title=self._project_title,
                ),
            },
        ]
        return await self._client.call_tool(
            messages,
            ANALYZE_FLOW_TOOL,  # type: ignore[arg-type]
            temperature=self._temperature,
            metadata={"purpose": "flow_analysis"},
        )


def _read_should_transition(payload: Mapping[str, Any]) -> bool:
    value = _first(payload, "should_transition", "shouldTransition")
    if isinstance(value, bool):
        return value
    strategy = _first(payload, "next_agent_type", "nextAgentType")
    if strategy in ("transition", "followup"):
        return strategy == "transition"
    raise FlowAnalysisError("Analysis does not say whether to transition")


def _read_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(0, int(value))


def _read_engagement(value: Any) -> EngagementLevel | None:
    if not isinstance(value, str):
        return None
    return _ENGAGEMENT_ALIASES.get(value.strip().lower())


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


__all__ = [
    "ANALYZE_FLOW_TOOL",
    "FlowAnalysisError",
    "FlowAnalyzer",
    "FlowResolution",
    "LLMFlowAnalyzer",
    "decision_from_analysis",
    "resolve_flow_decision",
]
