"""OpenTelemetry spans around runs, chat requests and tool calls.

Tracing stays off until :func:`instrument` is called, and every helper
here is a no-op while it is off.  Spans nest as::

    invoke_agent
      chat <model>              one per tool round
      execute_tool <name>       one per tool call
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

from toolstream.errors import TransportError

logger = logging.getLogger(__name__)

TRACER_NAME = "toolstream"

_tracer = None


def instrument(*, tracer_name: str = TRACER_NAME, tracer_provider=None) -> None:
    """Start emitting spans through ``opentelemetry-api``.

    Without *tracer_provider* the globally registered provider is used.
    Raises ``ImportError`` when the ``otel`` extra is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry") is None:
        raise ImportError(
            "tracing needs opentelemetry-api: pip install toolstream[otel]"
        )
    from opentelemetry import trace

    _tracer = trace.get_tracer(tracer_name, tracer_provider=tracer_provider)
    logger.info(f"Tracing enabled for {tracer_name}")


def uninstrument() -> None:
    global _tracer
    _tracer = None


@asynccontextmanager
async def _span(name: str, attributes: dict, client: bool = False):
    if _tracer is None:
        yield None
        return
    kwargs = {}
    if client:
        from opentelemetry.trace import SpanKind

        kwargs["kind"] = SpanKind.CLIENT
    with _tracer.start_as_current_span(name, attributes=attributes, **kwargs) as span:
        yield span


def run_span(session_id: str, model: str):
    """One submitted message, across every tool round it triggers."""
    return _span("invoke_agent", {
        "gen_ai.operation.name": "invoke_agent",
        "gen_ai.conversation.id": session_id,
        "gen_ai.request.model": model,
    })


def completion_span(endpoint: str, model: str):
    return _span(f"chat {model}", {
        "gen_ai.operation.name": "chat",
        "gen_ai.request.model": model,
        "server.address": endpoint,
    }, client=True)


def tool_span(tool_name: str, call_id: str):
    return _span(f"execute_tool {tool_name}", {
        "gen_ai.operation.name": "execute_tool",
        "gen_ai.tool.name": tool_name,
        "gen_ai.tool.call.id": call_id,
    })


def record_run(span, status: str, rounds: int) -> None:
    """Mark how a run ended and how many model requests it made."""
    if span is None:
        return
    span.set_attribute("toolstream.run.status", status)
    span.set_attribute("toolstream.run.rounds", rounds)


def record_turn(span, finish_reason: str | None, tool_calls: int) -> None:
    if span is None:
        return
    if finish_reason:
        span.set_attribute("gen_ai.response.finish_reasons", [finish_reason])
    span.set_attribute("toolstream.turn.tool_calls", tool_calls)


def record_tool_outcome(span, ok: bool, summary: str) -> None:
    if span is None:
        return
    span.set_attribute("toolstream.tool.ok", ok)
    span.set_attribute("toolstream.tool.summary_length", len(summary))


def record_error(span, exception: BaseException) -> None:
    """Set ERROR status on *span*, keeping the HTTP status when known."""
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute("error.type", type(exception).__qualname__)
    if isinstance(exception, TransportError) and exception.status_code is not None:
        span.set_attribute("http.response.status_code", exception.status_code)
