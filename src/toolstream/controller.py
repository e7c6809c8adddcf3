import logging
from contextlib import aclosing
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum

from toolstream.cancellation import CancellationToken, guarded, run_cancellable
from toolstream.config import AgentConfig
from toolstream.errors import ConfigurationError, RequestCanceled, TransportError
from toolstream.events import (
    AgentEvent,
    RunCompleteEvent,
    ToolResultEvent,
    ToolStartedEvent,
    TurnUpdateEvent,
)
from toolstream.executor import ToolExecutor
from toolstream.instrumentation import (
    completion_span,
    record_error,
    record_run,
    record_turn,
    run_span,
)
from toolstream.message import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolCall,
    ToolResultMessage,
    UserMessage,
)
from toolstream.provider import ModelProvider, OpenAICompatibleProvider
from toolstream.session import AgentSession, LoopState
from toolstream.sse import decode_stream
from toolstream.streaming import TurnAccumulator, stream_events
from toolstream.tools import ToolOutcome

logger = logging.getLogger(__name__)

CANCELED_MESSAGE = "Request canceled."
TOOL_CANCELED_MESSAGE = "Tool call canceled."
MAX_ROUNDS_MESSAGE = "Maximum tool rounds reached. Please try again."

CANCELED_OUTCOME = ToolOutcome(
    ok=False, summary=TOOL_CANCELED_MESSAGE, raw=TOOL_CANCELED_MESSAGE,
)


class RunStatus(Enum):
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"
    MAX_ROUNDS = "max_rounds"


@dataclass
class RunResult:
    """The result of a single submitted user message."""

    last_message: Message
    status: RunStatus
    rounds: int


class AgentController:
    """Drives the request, stream, tool, recurse loop for one session.

    At most one run is active at a time: ``iter()`` and ``submit()``
    refuse new input unless the session is idle.  Tool calls within a
    round run strictly in index order, and each result is in history
    before the next call starts.

    Args:
        config: Configuration, or a zero-argument callable returning the
            current configuration. It is read at the start of every
            model request and every tool call.
        provider: Source of the raw model stream.
        executor: Runs tool calls; also supplies the tool schemas.
        session: Existing session to continue.
        max_rounds: Optional ceiling on model requests per submitted
            message. ``None`` lets the model decide when to stop.
    """

    def __init__(
        self,
        config: AgentConfig | Callable[[], AgentConfig],
        provider: ModelProvider | None = None,
        executor: ToolExecutor | None = None,
        session: AgentSession | None = None,
        max_rounds: int | None = None,
    ):
        self._config_source = config
        self.provider = provider or OpenAICompatibleProvider()
        self.executor = executor or ToolExecutor()
        self.session = session or AgentSession()
        self.max_rounds = max_rounds
        self._clear_on_idle = False

    @property
    def state(self) -> LoopState:
        return self.session.state

    @property
    def config(self) -> AgentConfig:
        """Current configuration snapshot."""
        if isinstance(self._config_source, AgentConfig):
            return self._config_source.model_copy()
        return self._config_source()

    def build_messages(self, config: AgentConfig) -> list[dict]:
        """Wire messages for the next request: system prompt plus history."""
        messages = []
        if config.system_prompt:
            messages.append(SystemMessage(content=config.system_prompt).model_dump())
        messages.extend(m.model_dump() for m in self.session.history)
        return messages

    async def submit(
        self,
        user_text: str,
        on_event: Callable[[AgentEvent], None] | None = None,
    ) -> RunResult | None:
        """Run ``iter()`` to completion. Returns ``None`` if rejected."""
        result = None
        async for event in self.iter(user_text):
            if on_event is not None:
                on_event(event)
            if isinstance(event, RunCompleteEvent):
                result = event.result
        return result

    def cancel(self) -> bool:
        """Ask the active run to stop. Returns ``False`` when idle."""
        token = self.session.cancel_token
        if not self.session.streaming or token is None:
            return False
        logger.info(f"Canceling run in state {self.session.state.value}")
        token.cancel()
        return True

    def clear(self) -> None:
        """Cancel any active run and forget the conversation.

        Turns the canceled run appends while it unwinds are dropped too,
        so history stays empty once it is back to idle.
        """
        if self.cancel():
            self._clear_on_idle = True
        self.session.clear()

    async def iter(self, user_text: str) -> AsyncIterator[AgentEvent]:
        """Run the agent loop for one user message, yielding events."""
        session = self.session
        if session.state is not LoopState.IDLE:
            logger.warning("Rejected input: a run is already active")
            return
        text = user_text.strip() if isinstance(user_text, str) else ""
        if not text:
            logger.warning("Rejected empty input")
            return

        token = CancellationToken()
        session.cancel_token = token
        session.history.append(UserMessage(content=text))
        session.state = LoopState.REQUESTING

        try:
            async with run_span(session.session_id, self.config.model) as span:
                async with aclosing(self._run_rounds(token)) as events:
                    async for event in events:
                        if isinstance(event, RunCompleteEvent):
                            record_run(span, event.result.status.value, event.result.rounds)
                        yield event
        finally:
            session.state = LoopState.IDLE
            session.cancel_token = None
            if self._clear_on_idle:
                self._clear_on_idle = False
                session.clear()

    async def _run_rounds(self, token: CancellationToken) -> AsyncIterator[AgentEvent]:
        session = self.session
        rounds = 0
        while True:
            rounds += 1
            config = self.config
            turn = TurnAccumulator()
            try:
                async with aclosing(self._stream_turn(config, turn, token)) as updates:
                    async for event in updates:
                        yield event
            except RequestCanceled:
                for event in self._finish_canceled(turn.content, rounds):
                    yield event
                return
            except (TransportError, ConfigurationError) as e:
                for event in self._finish_failed(e, turn.content, rounds):
                    yield event
                return

            message = turn.finalize()
            session.history.append(message)
            yield TurnUpdateEvent(message=message.model_copy(deep=True), final=True)

            if not message.tool_calls:
                logger.info(f"Run finished after {rounds} round(s)")
                yield RunCompleteEvent(result=RunResult(
                    last_message=message,
                    status=RunStatus.COMPLETED,
                    rounds=rounds,
                ))
                return

            session.state = LoopState.EXECUTING_TOOLS
            async for event in self._execute_tools(message.tool_calls, token):
                yield event
            if token.cancelled:
                for event in self._finish_canceled("", rounds):
                    yield event
                return

            if self.max_rounds is not None and rounds >= self.max_rounds:
                notice = AssistantMessage(content=MAX_ROUNDS_MESSAGE)
                session.history.append(notice)
                yield TurnUpdateEvent(message=notice.model_copy(deep=True), final=True)
                yield RunCompleteEvent(result=RunResult(
                    last_message=notice,
                    status=RunStatus.MAX_ROUNDS,
                    rounds=rounds,
                ))
                return

            session.state = LoopState.REQUESTING

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def _stream_turn(
        self, config: AgentConfig, turn: TurnAccumulator, token: CancellationToken,
    ) -> AsyncIterator[TurnUpdateEvent]:
        if not config.api_key:
            raise ConfigurationError("API key is not configured")

        messages = self.build_messages(config)
        async with completion_span(config.api_endpoint, config.model) as span:
            chunks = guarded(
                self.provider.stream(config, messages, self.executor.schemas()),
                token,
            )
            try:
                async for event in stream_events(decode_stream(chunks)):
                    self.session.state = LoopState.STREAMING
                    turn.apply(event)
                    yield TurnUpdateEvent(message=turn.snapshot())
            except TransportError as e:
                record_error(span, e)
                raise
            finally:
                await chunks.aclose()
            record_turn(span, turn.finish_reason, len(turn.tool_calls))

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    async def _execute_tools(
        self, calls: list[ToolCall], token: CancellationToken,
    ) -> AsyncIterator[AgentEvent]:
        for call in calls:
            if token.cancelled:
                yield self._record_tool_result(call, CANCELED_OUTCOME)
                continue
            yield ToolStartedEvent(call=call.model_copy())
            try:
                outcome = await run_cancellable(
                    self.executor.execute(call, self.config), token,
                )
            except RequestCanceled:
                outcome = CANCELED_OUTCOME
            yield self._record_tool_result(call, outcome)

    def _record_tool_result(self, call: ToolCall, outcome: ToolOutcome) -> ToolResultEvent:
        result = ToolResultMessage(
            tool_call_id=call.id,
            name=call.name,
            content=outcome.raw,
            ok=outcome.ok,
            summary=outcome.summary,
        )
        self.session.history.append(result)
        return ToolResultEvent(
            call=call.model_copy(),
            outcome=outcome.model_copy(),
            message=result.model_copy(),
        )

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _finish_canceled(self, partial: str, rounds: int) -> list[AgentEvent]:
        message = AssistantMessage(
            content=CANCELED_MESSAGE, canceled=True, partial_content=partial,
        )
        self.session.history.append(message)
        logger.info("Run canceled by user")
        return [
            TurnUpdateEvent(message=message.model_copy(deep=True), final=True),
            RunCompleteEvent(result=RunResult(
                last_message=message, status=RunStatus.CANCELED, rounds=rounds,
            )),
        ]

    def _finish_failed(
        self, error: Exception, partial: str, rounds: int,
    ) -> list[AgentEvent]:
        message = AssistantMessage(
            content=f"Request failed: {error}", error=True, partial_content=partial,
        )
        self.session.history.append(message)
        logger.error(f"Run failed: {error}")
        return [
            TurnUpdateEvent(message=message.model_copy(deep=True), final=True),
            RunCompleteEvent(result=RunResult(
                last_message=message, status=RunStatus.FAILED, rounds=rounds,
            )),
        ]
