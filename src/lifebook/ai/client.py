"""OpenAI-compatible client used by the interview and editing assistants.

Lifebook only ever needs two things from a model: streamed chat output while a
prompt is being debugged, and a single forced function call whose JSON
arguments drive a flow analysis or a partial edit. Both go through
:class:`AIClient`, which owns retries and request metadata.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, cast

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIError, APIStatusError, RateLimitError
from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionToolChoiceOptionParam,
    ChatCompletionToolParam,
)
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

LOGGER = logging.getLogger(__name__)

Message = Mapping[str, Any] | ChatCompletionMessageParam

TOOL_ARGUMENTS_DELTA = "tool_calls.function.arguments.delta"
TOOL_ARGUMENTS_DONE = "tool_calls.function.arguments.done"

_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    APIError,
    APIStatusError,
    APIConnectionError,
    RateLimitError,
    httpx.TimeoutException,
)


class ToolCallMissingError(RuntimeError):
    """Raised when a forced tool call produced no usable arguments."""


class StreamInterruptedError(RuntimeError):
    """Raised when the transport fails after events were already yielded."""


@dataclass(slots=True)
class ClientSettings:
    """Connection and retry options for :class:`AIClient`."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    metadata: Mapping[str, str] | None = None
    debug_logging: bool = False


@dataclass(slots=True)
class AIStreamEvent:
    """One streamed delta: text content or function-call arguments."""

    type: str
    content: str | None = None
    parsed: Any | None = None
    tool_name: str | None = None
    tool_arguments: str | None = None
    arguments_delta: str | None = None

    @property
    def is_tool_result(self) -> bool:
        return self.type == TOOL_ARGUMENTS_DONE


class AIClient:
    """Thin async wrapper over ``AsyncOpenAI`` chat completions."""

    def __init__(self, settings: ClientSettings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
        )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def stream_chat(
        self,
        messages: Iterable[Message],
        *,
        tools: Iterable[ChatCompletionToolParam] | None = None,
        tool_choice: ChatCompletionToolChoiceOptionParam | None = None,
        temperature: float | None = 0.2,
        metadata: Mapping[str, str] | None = None,
    ) -> AsyncIterator[AIStreamEvent]:
        """Yield normalized events for one chat completion.

        Transport failures are retried with exponential backoff as long as no
        event has been yielded yet. A failure after that raises
        :class:`StreamInterruptedError` so callers never see duplicated deltas.
        """

        payload = self._request_payload(messages, tools, tool_choice, temperature, metadata)
        LOGGER.debug("Requesting %s with %s message(s)", self._settings.model, len(payload["messages"]))
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        yielded = False
        async for attempt in self._retrying():
            with attempt:
                try:
                    async with self._client.chat.completions.stream(**payload) as stream:
                        async for raw in stream:
                            event = _to_stream_event(raw)
                            if event is not None:
                                yielded = True
                                yield event
                except _RETRYABLE_ERRORS as exc:
                    if yielded:
                        raise StreamInterruptedError("Chat stream failed after partial output") from exc
                    raise
            break

    async def call_tool(
        self,
        messages: Iterable[Message],
        tool: ChatCompletionToolParam,
        *,
        temperature: float | None = 0.2,
        metadata: Mapping[str, str] | None = None,
    ) -> Dict[str, Any]:
        """Force the model to call ``tool`` and return its parsed arguments.

        The last completed call to ``tool`` wins. Raises
        :class:`ToolCallMissingError` when the model answered in prose or sent
        arguments that are not a JSON object.
        """

        name = tool["function"]["name"]
        choice = cast(ChatCompletionToolChoiceOptionParam, {"type": "function", "function": {"name": name}})
        arguments: Any = None
        async for event in self.stream_chat(
            messages, tools=[tool], tool_choice=choice, temperature=temperature, metadata=metadata
        ):
            if not event.is_tool_result:
                continue
            if event.tool_name and event.tool_name != name:
                LOGGER.debug("Ignoring call to unrequested tool %s", event.tool_name)
                continue
            arguments = event.parsed if event.parsed is not None else _parse_arguments(event.tool_arguments)

        if not isinstance(arguments, Mapping):
            raise ToolCallMissingError(f"Model did not return arguments for tool '{name}'")
        LOGGER.debug("Tool %s returned %s argument(s)", name, len(arguments))
        return dict(arguments)

    async def aclose(self) -> None:
        """Release the HTTP connection pool."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(multiplier=self._settings.retry_min_seconds, max=self._settings.retry_max_seconds),
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
        )

    def _request_payload(
        self,
        messages: Iterable[Message],
        tools: Iterable[ChatCompletionToolParam] | None,
        tool_choice: ChatCompletionToolChoiceOptionParam | None,
        temperature: float | None,
        metadata: Mapping[str, str] | None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self._settings.model, "messages": _message_list(messages)}
        merged = {**(self._settings.metadata or {}), **(metadata or {})}
        if merged:
            payload["metadata"] = merged
        if tools:
            payload["tools"] = list(tools)
        if tool_choice:
            payload["tool_choice"] = tool_choice
        if temperature is not None:
            payload["temperature"] = temperature
        return payload

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Prompt payload:\n%s", serialized)


def _message_list(messages: Iterable[Message]) -> List[ChatCompletionMessageParam]:
    result: List[ChatCompletionMessageParam] = []
    for message in messages:
        try:
            result.append(cast(ChatCompletionMessageParam, dict(message)))
        except (TypeError, ValueError) as exc:
            raise TypeError("Messages must be mapping-like objects") from exc
    if not result:
        raise ValueError("At least one message is required to start a chat")
    return result


def _to_stream_event(raw: Any) -> AIStreamEvent | None:
    kind = getattr(raw, "type", None)
    if kind == "content.delta":
        delta = getattr(raw, "delta", None)
        return AIStreamEvent(type=kind, content=str(delta)) if delta else None
    if kind == "content.done":
        return AIStreamEvent(type=kind, content=getattr(raw, "content", None), parsed=getattr(raw, "parsed", None))
    if kind == "refusal.done":
        return AIStreamEvent(type=kind, content=getattr(raw, "refusal", None))
    if kind in (TOOL_ARGUMENTS_DELTA, TOOL_ARGUMENTS_DONE):
        return AIStreamEvent(
            type=kind,
            tool_name=getattr(raw, "name", None),
            tool_arguments=getattr(raw, "arguments", None),
            arguments_delta=getattr(raw, "arguments_delta", None),
            parsed=getattr(raw, "parsed_arguments", None),
        )
    return None


def _parse_arguments(text: str | None) -> Any:
    if not text or not text.strip():
        return None
    try:
        return json.loads(text, strict=False)
    except (TypeError, ValueError):
        LOGGER.debug("Tool arguments are not valid JSON: %r", text[:200])
        return None


__all__ = ["AIClient", "AIStreamEvent", "ClientSettings", "StreamInterruptedError", "ToolCallMissingError"]
