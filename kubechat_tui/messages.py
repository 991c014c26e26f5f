"""Messages exchanged between the chat screen and the agent."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OutputType(str, Enum):
    """Kind of event the agent emits."""

    TEXT = "text"
    THINK = "think"
    TOOL_START = "tool_start"
    TOOL_RESULT = "tool_result"
    DONE = "done"
    ERROR = "error"


class Role(str, Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageType(str, Enum):
    """Kind of assistant message shown in the conversation."""

    TEXT = "text"
    THINK = "think"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"


@dataclass(frozen=True)
class Input:
    """A line the user submitted to the agent."""

    text: str


@dataclass(frozen=True)
class Output:
    """An event produced by the agent."""

    type: OutputType
    content: str = ""
    message_type: str = ""
    tool_name: str = ""
    tool_args: str = ""
    tool_result: str = ""
    tool_success: bool = False
    cluster_name: str = ""


@dataclass(frozen=True)
class ChatMessage:
    """One entry of the conversation shown on screen."""

    role: Role
    content: str
    message_type: MessageType | None = None