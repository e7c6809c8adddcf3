"""Events emitted to the transcript sink while a run is in progress.

Every message carried by an event is a copy; mutating it does not
touch the session history.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from toolstream.message import AssistantMessage, ToolCall, ToolResultMessage
from toolstream.tools import ToolOutcome


@dataclass
class AgentEvent:
    """Base for all sink events."""


@dataclass
class TurnUpdateEvent(AgentEvent):
    """The in-flight assistant turn changed.

    ``final`` is set once the turn has been appended to history.
    """

    message: AssistantMessage
    final: bool = False


@dataclass
class ToolStartedEvent(AgentEvent):
    call: ToolCall


@dataclass
class ToolResultEvent(AgentEvent):
    """A tool finished and its result is already in history."""

    call: ToolCall
    outcome: ToolOutcome
    message: ToolResultMessage


@dataclass
class RunCompleteEvent(AgentEvent):
    """Final event, always the last one a run yields."""

    result: Any = None
