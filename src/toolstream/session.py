import uuid
from enum import Enum

from pydantic import BaseModel, Field

from toolstream.cancellation import CancellationToken
from toolstream.message import Turn


class LoopState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    EXECUTING_TOOLS = "executing_tools"


class AgentSession(BaseModel):
    """Conversation state owned by a single :class:`AgentController`.

    Only the controller mutates a session; everyone else reads
    :meth:`snapshot`.
    """

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    history: list[Turn] = Field(default_factory=list)
    state: LoopState = LoopState.IDLE
    cancel_token: CancellationToken | None = Field(default=None, exclude=True)

    model_config = {"arbitrary_types_allowed": True}

    @property
    def streaming(self) -> bool:
        return self.state is not LoopState.IDLE

    def snapshot(self) -> list[Turn]:
        return [m.model_copy(deep=True) for m in self.history]

    def clear(self) -> None:
        self.history = []
