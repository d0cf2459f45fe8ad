"""Interview turns, topic tracking and next-question flow decisions."""

from .flow_advisor import FlowAdvisor, FlowThresholds
from .flow_analysis import (
    ANALYZE_FLOW_TOOL,
    FlowAnalysisError,
    FlowAnalyzer,
    FlowResolution,
    LLMFlowAnalyzer,
    decision_from_analysis,
    resolve_flow_decision,
)
from .models import (
    ConversationTurn,
    EngagementLevel,
    FlowDecision,
    LengthTrend,
    TransitionReason,
)
from .session import ConversationLog, TurnFrozenError

__all__ = [
    "ANALYZE_FLOW_TOOL",
    "ConversationLog",
    "ConversationTurn",
    "EngagementLevel",
    "FlowAdvisor",
    "FlowAnalysisError",
    "FlowAnalyzer",
    "FlowDecision",
    "FlowResolution",
    "FlowThresholds",
    "LLMFlowAnalyzer",
    "LengthTrend",
    "TransitionReason",
    "TurnFrozenError",
    "decision_from_analysis",
    "resolve_flow_decision",
]
