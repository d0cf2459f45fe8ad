"""Model-facing helpers: the async client, prompts and the structured requests built on it."""

from .client import AIClient, AIStreamEvent, ClientSettings, StreamInterruptedError, ToolCallMissingError
from .expansion_questions import ExpansionQuestions, QuestionFocus, request_expansion_questions
from .partial_edit import PartialEditProposal, SUBMIT_PARTIAL_EDIT_TOOL, request_partial_edit

__all__ = [
    "AIClient",
    "AIStreamEvent",
    "ClientSettings",
    "ExpansionQuestions",
    "PartialEditProposal",
    "QuestionFocus",
    "SUBMIT_PARTIAL_EDIT_TOOL",
    "StreamInterruptedError",
    "ToolCallMissingError",
    "request_expansion_questions",
    "request_partial_edit",
]
