from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from toolstream.config import AgentConfig
    from toolstream.message import ToolCall


@dataclass
class ToolContext:
    """Runtime context injected into tools that declare a ``context`` parameter.

    Args:
        config: Configuration snapshot taken when the tool call started.
        http_client: Client tools use for outgoing requests.
        call: The tool call being executed.
    """

    config: AgentConfig
    http_client: httpx.AsyncClient
    call: ToolCall
