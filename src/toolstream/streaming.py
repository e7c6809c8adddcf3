"""Streaming primitives for chat-completion responses.

Decoded records become :class:`StreamEvent` objects.  The
:class:`ToolCallAccumulator` reassembles tool calls whose arguments
arrive in fragments across multiple records, and the
:class:`TurnAccumulator` folds every event into one assistant turn.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass

from toolstream.message import AssistantMessage, ToolCall

logger = logging.getLogger(__name__)

EMPTY_ARGUMENTS = "{}"


@dataclass
class StreamEvent:
    """Base for all events decoded from the model stream."""


@dataclass
class ContentDelta(StreamEvent):
    """Text to append to the assistant turn."""

    text: str = ""


@dataclass
class ToolCallDelta(StreamEvent):
    """A fragment of a tool call from a streaming record."""

    index: int | None = None
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class StreamDone(StreamEvent):
    """The stream closed. ``reason`` is ``"done"`` or ``"eof"``."""

    reason: str = "done"
    finish_reason: str | None = None


def _content_text(content) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for segment in content:
            if isinstance(segment, dict):
                parts.append(segment.get("text") or "")
            elif isinstance(segment, str):
                parts.append(segment)
        return "".join(parts)
    return ""


def _as_str(value) -> str | None:
    return value if isinstance(value, str) else None


def parse_record(record: dict) -> list[StreamEvent]:
    """Turn one decoded stream record into events.

    Absent or null fields simply produce no event.
    """
    choices = record.get("choices")
    if not isinstance(choices, list) or not choices:
        return []
    choice = choices[0] if isinstance(choices[0], dict) else {}
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        delta = {}

    events: list[StreamEvent] = []
    text = _content_text(delta.get("content"))
    if text:
        events.append(ContentDelta(text=text))

    tool_calls = delta.get("tool_calls")
    if isinstance(tool_calls, list):
        for call in tool_calls:
            if not isinstance(call, dict):
                continue
            function = call.get("function")
            if not isinstance(function, dict):
                function = {}
            index = call.get("index")
            events.append(ToolCallDelta(
                index=index if isinstance(index, int) else None,
                call_id=_as_str(call.get("id")),
                name=_as_str(function.get("name")),
                arguments_delta=_as_str(function.get("arguments")),
            ))

    finish_reason = choice.get("finish_reason")
    if isinstance(finish_reason, str):
        events.append(StreamDone(reason="finish", finish_reason=finish_reason))
    return events


async def stream_events(
    records: AsyncIterable[dict],
) -> AsyncIterator[StreamEvent]:
    """Map decoded records to events, ending with exactly one ``StreamDone``."""
    finish_reason = None
    async for record in records:
        for event in parse_record(record):
            if isinstance(event, StreamDone):
                finish_reason = event.finish_reason
                continue
            yield event
    yield StreamDone(reason="done", finish_reason=finish_reason)


class ToolCallAccumulator:
    """Assembles complete tool calls from streaming fragments."""

    def __init__(self) -> None:
        self._pending: dict[int, ToolCall] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def feed(self, fragment: ToolCallDelta) -> None:
        index = fragment.index
        if index is None:
            index = max(self._pending) + 1 if self._pending else 0
        if index not in self._pending:
            self._pending[index] = ToolCall(index=index)
        tc = self._pending[index]
        if fragment.call_id and not tc.id:
            tc.id = fragment.call_id
        if fragment.name and not tc.name:
            tc.name = fragment.name
        if fragment.arguments_delta is not None:
            tc.arguments += fragment.arguments_delta

    def snapshot(self) -> list[ToolCall]:
        return [self._pending[i].model_copy() for i in sorted(self._pending)]

    def finalize(self) -> list[ToolCall]:
        """Return completed tool calls in index order.

        Arguments that are not valid JSON are replaced with ``{}`` so a
        single garbled call does not sink the others.
        """
        calls = self.snapshot()
        for tc in calls:
            try:
                json.loads(tc.arguments)
            except json.JSONDecodeError:
                logger.warning(
                    f"Tool call {tc.index} ({tc.name}) has invalid arguments, "
                    f"using empty arguments"
                )
                tc.arguments = EMPTY_ARGUMENTS
        return calls


class TurnAccumulator:
    """Folds stream events into a single assistant turn."""

    def __init__(self) -> None:
        self.content = ""
        self.tool_calls = ToolCallAccumulator()
        self.finish_reason: str | None = None
        self.closed = False

    def apply(self, event: StreamEvent) -> None:
        if self.closed:
            return
        if isinstance(event, ContentDelta):
            self.content += event.text
        elif isinstance(event, ToolCallDelta):
            self.tool_calls.feed(event)
        elif isinstance(event, StreamDone):
            self.finish_reason = event.finish_reason
            self.closed = True

    def snapshot(self) -> AssistantMessage:
        """Render-ready copy of the turn as it stands."""
        return AssistantMessage(
            content=self.content,
            tool_calls=self.tool_calls.snapshot(),
        )

    def finalize(self) -> AssistantMessage:
        self.closed = True
        return AssistantMessage(
            content=self.content,
            tool_calls=self.tool_calls.finalize(),
        )
