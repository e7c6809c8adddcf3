from toolstream.config import AgentConfig
from toolstream.controller import AgentController, RunResult, RunStatus
from toolstream.instrumentation import instrument, uninstrument
from toolstream.session import AgentSession, LoopState

__all__ = [
    "AgentConfig",
    "AgentController",
    "AgentSession",
    "LoopState",
    "RunResult",
    "RunStatus",
    "instrument",
    "uninstrument",
]
