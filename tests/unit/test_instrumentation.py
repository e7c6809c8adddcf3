"""Tracing helpers, and the attributes the loop records on its spans."""

from unittest.mock import MagicMock, call, patch

import pytest
from opentelemetry.trace import SpanKind, StatusCode

import toolstream.instrumentation as inst
from toolstream.controller import AgentController
from toolstream.errors import TransportError
from toolstream.instrumentation import (
    completion_span,
    record_error,
    record_run,
    record_tool_outcome,
    record_turn,
    run_span,
    tool_span,
)
from toolstream.message import ToolCall

from tests.conftest import content_record, sse


@pytest.fixture(autouse=True)
def _reset_tracer():
    inst._tracer = None
    yield
    inst._tracer = None


@pytest.fixture
def span():
    """Install a mock tracer whose spans all resolve to one mock span."""
    mock_span = MagicMock()
    tracer = MagicMock()
    tracer.start_as_current_span.return_value.__enter__.return_value = mock_span
    tracer.start_as_current_span.return_value.__exit__.return_value = False
    inst._tracer = tracer
    return mock_span


def attributes(span) -> dict:
    return {c.args[0]: c.args[1] for c in span.set_attribute.call_args_list}


class TestInstrument:
    def test_requires_otel_extra(self):
        with patch("importlib.util.find_spec", return_value=None):
            with pytest.raises(ImportError, match=r"toolstream\[otel\]"):
                inst.instrument()
        assert inst._tracer is None

    def test_uses_given_tracer_provider(self):
        provider = MagicMock()
        inst.instrument(tracer_provider=provider)

        assert provider.get_tracer.call_args.args[0] == "toolstream"
        assert inst._tracer is provider.get_tracer.return_value

    def test_uninstrument_turns_tracing_off(self):
        inst.instrument(tracer_provider=MagicMock())
        inst.uninstrument()
        assert inst._tracer is None


class TestDisabled:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("span_fn,args", [
        (run_span, ("s1", "m")),
        (completion_span, ("https://model.test/v1", "m")),
        (tool_span, ("search_web", "call_1")),
    ], ids=["run", "chat", "tool"])
    async def test_spans_yield_none(self, span_fn, args):
        async with span_fn(*args) as s:
            assert s is None

    def test_recorders_accept_none(self):
        record_run(None, "completed", 1)
        record_turn(None, "stop", 0)
        record_tool_outcome(None, True, "ok")
        record_error(None, RuntimeError("boom"))


class TestSpans:
    @pytest.mark.asyncio
    async def test_chat_span_is_a_client_span(self, span):
        async with completion_span("https://model.test/v1", "gpt-4o-mini") as s:
            assert s is span

        name = inst._tracer.start_as_current_span.call_args.args[0]
        kwargs = inst._tracer.start_as_current_span.call_args.kwargs
        assert name == "chat gpt-4o-mini"
        assert kwargs["kind"] is SpanKind.CLIENT
        assert kwargs["attributes"]["server.address"] == "https://model.test/v1"

    @pytest.mark.asyncio
    async def test_tool_span_names_the_tool(self, span):
        async with tool_span("search_web", "call_42"):
            pass

        name = inst._tracer.start_as_current_span.call_args.args[0]
        kwargs = inst._tracer.start_as_current_span.call_args.kwargs
        assert name == "execute_tool search_web"
        assert "kind" not in kwargs
        assert kwargs["attributes"]["gen_ai.tool.call.id"] == "call_42"


class TestRecorders:
    def test_turn_without_finish_reason(self, span):
        record_turn(span, None, 2)
        assert attributes(span) == {"toolstream.turn.tool_calls": 2}

    def test_turn_with_finish_reason(self, span):
        record_turn(span, "tool_calls", 1)
        assert attributes(span)["gen_ai.response.finish_reasons"] == ["tool_calls"]

    def test_transport_error_keeps_status_code(self, span):
        exc = TransportError("429 Too Many Requests", status_code=429)
        record_error(span, exc)

        span.set_status.assert_called_once_with(StatusCode.ERROR, "429 Too Many Requests")
        span.record_exception.assert_called_once_with(exc)
        assert attributes(span) == {
            "error.type": "TransportError",
            "http.response.status_code": 429,
        }

    def test_other_errors_have_no_status_code(self, span):
        record_error(span, RuntimeError("boom"))
        assert attributes(span) == {"error.type": "RuntimeError"}


class TestLoopAttributes:
    @pytest.mark.asyncio
    async def test_completed_run(self, span, config, mock_provider, executor):
        controller = AgentController(config=config, provider=mock_provider, executor=executor)
        mock_provider.streams = [[sse(
            content_record("Hello"),
            {"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]},
        )]]

        await controller.submit("hi")

        recorded = attributes(span)
        assert recorded["gen_ai.response.finish_reasons"] == ["stop"]
        assert recorded["toolstream.turn.tool_calls"] == 0
        assert recorded["toolstream.run.status"] == "completed"
        assert recorded["toolstream.run.rounds"] == 1

    @pytest.mark.asyncio
    async def test_failed_tool_outcome(self, span, executor, config):
        outcome = await executor.execute(
            ToolCall(id="call_1", name="search_web", arguments="{}"), config,
        )

        assert not outcome.ok
        assert span.set_attribute.call_args_list == [
            call("toolstream.tool.ok", False),
            call("toolstream.tool.summary_length", len(outcome.summary)),
        ]
