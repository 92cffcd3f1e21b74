import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator

from litewire.events import ToolCallPart


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


class Message(BaseModel):
    role: MessageRole
    content: str

    @field_serializer('role')
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value


class ToolCallRequestMessage(Message):
    content: str | None = None
    tool_calls: list[ToolCallPart]

    @field_serializer("tool_calls")
    def serialize_tool_calls(self, tool_calls: list[ToolCallPart]) -> list[dict]:
        return [
            {
                "id": t.call_id,
                "type": "function",
                "function": {
                    "arguments": json.dumps(t.arguments),
                    "name": t.name
                }
            }
            for t in tool_calls
        ]


class ToolCallResultMessage(Message):
    tool_call_id: str


# ---------------------------------------------------------------------------
# Streamed wire chunks (``data: {...}`` payloads)
# ---------------------------------------------------------------------------

def _string_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class FunctionDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None

    @field_validator("name", "arguments", mode="before")
    @classmethod
    def _only_strings(cls, value: Any) -> str | None:
        return _string_or_none(value)


class ToolCallDelta(BaseModel):
    """One fragment of a standard-format tool call."""

    index: int = 0
    id: str | None = None
    function: FunctionDelta | None = None

    @field_validator("index", mode="before")
    @classmethod
    def _default_index(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("id", mode="before")
    @classmethod
    def _only_string_id(cls, value: Any) -> str | None:
        return _string_or_none(value) or None


class ThinkingDelta(BaseModel):
    """Structured form of the ``thinking`` field."""

    text: str = ""
    id: str | None = None
    # Passed through untouched; only the server knows its shape.
    metadata: Any = None

    @field_validator("id", mode="before")
    @classmethod
    def _only_string_id(cls, value: Any) -> str | None:
        return _string_or_none(value)

    @classmethod
    def from_raw(cls, raw: Any) -> "ThinkingDelta | None":
        """Accept either a bare string or a ``{text, id?, metadata?}`` object."""
        if isinstance(raw, str):
            return cls(text=raw)
        if isinstance(raw, dict):
            return cls.model_validate(raw)
        return None


class Delta(BaseModel):
    content: str | None = None
    tool_calls: list[ToolCallDelta] | None = None
    # Left untyped: a malformed thinking payload must not invalidate the
    # rest of the delta.
    thinking: Any = None

    @field_validator("content", mode="before")
    @classmethod
    def _stringify_content(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class Choice(BaseModel):
    delta: Delta | None = None
    finish_reason: str | None = None
    thinking: Any = None


class ChatCompletionChunk(BaseModel):
    """Validated subset of an OpenAI ``chat.completion.chunk`` payload."""

    choices: list[Choice] = Field(default_factory=list)

    @field_validator("choices", mode="before")
    @classmethod
    def _default_choices(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def first_choice(self) -> Choice | None:
        return self.choices[0] if self.choices else None
