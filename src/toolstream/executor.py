import json
import logging

import httpx

from toolstream.config import AgentConfig
from toolstream.context import ToolContext
from toolstream.errors import ToolArgumentError
from toolstream.instrumentation import record_tool_outcome, tool_span
from toolstream.message import ToolCall
from toolstream.search import search_web
from toolstream.tools import Tool, ToolOutcome

logger = logging.getLogger(__name__)

DEFAULT_TOOLS = (search_web,)


class ToolExecutor:
    """Runs one tool call at a time and reports the outcome as data.

    ``execute`` never raises for problems local to a single call; bad
    arguments, unknown tools and failing tools all come back as
    ``ok=False`` outcomes.

    Args:
        tools: Tools the model may call. Defaults to ``search_web`` only.
        http_client: Shared client for outgoing tool requests. When not
            given, a short-lived client is opened per call.
    """

    def __init__(
        self,
        tools: list[Tool] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.tools = list(tools) if tools is not None else list(DEFAULT_TOOLS)
        self.tool_registry = {t.name: t for t in self.tools}
        self.http_client = http_client

    def schemas(self) -> list[dict]:
        return [t.model_dump() for t in self.tools]

    async def execute(self, call: ToolCall, config: AgentConfig) -> ToolOutcome:
        async with tool_span(call.name, call.id) as span:
            outcome = await self._execute(call, config)
            record_tool_outcome(span, outcome.ok, outcome.summary)
            return outcome

    async def _execute(self, call: ToolCall, config: AgentConfig) -> ToolOutcome:
        tool_obj = self.tool_registry.get(call.name)
        if tool_obj is None:
            logger.warning(f"Tool not found: {call.name}")
            message = f"tool '{call.name}' not found"
            return ToolOutcome(ok=False, summary=f"Error: {message}", raw=message)

        try:
            params = self._parse_arguments(tool_obj, call.arguments)
        except ToolArgumentError as e:
            logger.warning(f"Invalid arguments for {call.name}: {e}")
            return _argument_failure(e)

        logger.info(f"Calling {call.name} with {params}")
        if self.http_client is not None:
            return await self._call(tool_obj, call, config, self.http_client, params)
        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await self._call(tool_obj, call, config, client, params)

    async def _call(self, tool_obj, call, config, client, params) -> ToolOutcome:
        if tool_obj.wants_context:
            params["context"] = ToolContext(config=config, http_client=client, call=call)
        try:
            return await tool_obj(**params)
        except ToolArgumentError as e:
            logger.info(f"Tool {call.name} rejected its arguments: {e}")
            return _argument_failure(e)
        except Exception as e:
            logger.error(f"Tool {call.name} raised: {e}")
            message = f"Error calling {call.name}: {e}"
            return ToolOutcome(ok=False, summary=message, raw=message)

    @staticmethod
    def _parse_arguments(tool_obj: Tool, arguments: str) -> dict:
        try:
            params = json.loads(arguments or "{}")
        except json.JSONDecodeError as e:
            raise ToolArgumentError(f"arguments are not valid JSON: {e}") from e
        if not isinstance(params, dict):
            raise ToolArgumentError("arguments must be a JSON object")

        allowed = tool_obj.parameters.get("properties", {})
        params = {k: v for k, v in params.items() if k in allowed}
        missing = [name for name in tool_obj.required if name not in params]
        if missing:
            raise ToolArgumentError(f"missing required argument(s): {', '.join(missing)}")
        return params


def _argument_failure(error: ToolArgumentError) -> ToolOutcome:
    return ToolOutcome(
        ok=False, summary=f"Invalid arguments: {error}", raw=str(error),
    )
