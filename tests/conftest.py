import asyncio
import json

import httpx
import pytest

from toolstream.config import AgentConfig
from toolstream.executor import ToolExecutor
from toolstream.provider import ModelProvider


# ---------------------------------------------------------------------------
# SSE record builders (mirrors the chat-completions stream shape)
# ---------------------------------------------------------------------------

def content_record(text: str) -> dict:
    return {"choices": [{"index": 0, "delta": {"content": [{"type": "text", "text": text}]}}]}


def tool_call_record(
    index: int,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    call: dict = {"index": index, "function": {}}
    if call_id is not None:
        call["id"] = call_id
        call["type"] = "function"
    if name is not None:
        call["function"]["name"] = name
    if arguments is not None:
        call["function"]["arguments"] = arguments
    return {"choices": [{"index": 0, "delta": {"tool_calls": [call]}}]}


def sse(*records: dict, done: bool = True) -> bytes:
    """Encode records as one SSE body, optionally closed with [DONE]."""
    body = "".join(f"data: {json.dumps(r, ensure_ascii=False)}\n\n" for r in records)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


def text_stream(text: str) -> list[bytes]:
    return [sse(content_record(text))]


def tool_call_stream(
    name: str, args: dict, call_id: str = "call_1", index: int = 0,
) -> list[bytes]:
    """A stream requesting one tool call, with arguments split in two."""
    arguments = json.dumps(args)
    half = len(arguments) // 2
    return [sse(
        tool_call_record(index, call_id=call_id, name=name, arguments=""),
        tool_call_record(index, arguments=arguments[:half]),
        tool_call_record(index, arguments=arguments[half:]),
    )]


# ---------------------------------------------------------------------------
# Mock providers
# ---------------------------------------------------------------------------

class MockProvider(ModelProvider):
    """Provider that replays pre-queued chunk lists. No network calls.

    A queued item that is an exception is raised at that point of the
    stream.
    """

    def __init__(self):
        self.streams: list[list] = []
        self.call_log: list[dict] = []

    async def stream(self, config, messages, tools):
        self.call_log.append({"config": config, "messages": messages, "tools": tools})
        for chunk in self.streams.pop(0):
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk


class BlockingProvider(ModelProvider):
    """Yields its chunks, then hangs until the reader gives up."""

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.closed = False
        self.call_log: list[dict] = []

    async def stream(self, config, messages, tools):
        self.call_log.append({"messages": messages})
        try:
            for chunk in self.chunks:
                yield chunk
            await asyncio.Event().wait()
        finally:
            self.closed = True


# ---------------------------------------------------------------------------
# Search endpoint
# ---------------------------------------------------------------------------

SEARCH_ENDPOINT = "https://search.test/search"


class SearchBackend:
    """Records search requests and answers from a canned payload."""

    def __init__(self, payload=None, status_code: int = 200):
        self.payload = payload if payload is not None else {"results": []}
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def config():
    return AgentConfig(
        apiKey="sk-test",
        apiEndpoint="https://model.test/v1",
        model="mock-model",
        systemPrompt="You are helpful.",
        searchEndpoint=SEARCH_ENDPOINT,
    )


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def search_results():
    return [
        {"title": "Tokio", "url": "https://tokio.rs", "body": "An async runtime for Rust."},
        {"name": "async-std", "link": "https://async.rs", "description": "Async version of std."},
    ]


@pytest.fixture
def search_backend(search_results):
    return SearchBackend({"results": search_results})


@pytest.fixture
def executor(search_backend):
    return ToolExecutor(http_client=search_backend.client())
