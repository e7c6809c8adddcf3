from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_serializer, model_serializer


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


class ToolCall(BaseModel):
    """A tool call requested by the model.

    ``index`` is the position the server assigned while streaming and is
    what identifies the call; ``id`` may only show up on a later fragment.
    """

    index: int = 0
    id: str = ""
    name: str = ""
    arguments: str = ""

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": self.arguments,
            },
        }


class Message(BaseModel):
    role: MessageRole
    content: str = ""

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value


class SystemMessage(Message):
    role: Literal[MessageRole.SYSTEM] = MessageRole.SYSTEM


class UserMessage(Message):
    role: Literal[MessageRole.USER] = MessageRole.USER


class AssistantMessage(Message):
    role: Literal[MessageRole.ASSISTANT] = MessageRole.ASSISTANT
    tool_calls: list[ToolCall] = Field(default_factory=list)
    canceled: bool = False
    error: bool = False
    partial_content: str = ""

    @model_serializer
    def serialize_wire(self) -> dict:
        payload: dict = {"role": self.role.value}
        if self.content:
            payload["content"] = [{"type": "text", "text": self.content}]
        elif not self.tool_calls:
            payload["content"] = ""
        if self.tool_calls:
            payload["tool_calls"] = [tc.to_wire() for tc in self.tool_calls]
        return payload


class ToolResultMessage(Message):
    role: Literal[MessageRole.TOOL] = MessageRole.TOOL
    tool_call_id: str
    name: str = ""
    ok: bool = True
    summary: str = ""

    @model_serializer
    def serialize_wire(self) -> dict:
        return {
            "role": self.role.value,
            "content": self.content,
            "tool_call_id": self.tool_call_id,
            "name": self.name,
        }


Turn = Annotated[
    Union[UserMessage, AssistantMessage, ToolResultMessage],
    Field(discriminator="role"),
]
