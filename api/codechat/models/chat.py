"""
Pydantic models for chat sessions and the Chat API request/response contracts.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Attachment(CamelModel):
    """A file attached to a user message."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: Literal["image", "document"] = Field(..., description="Attachment kind")
    data: str = Field(..., description="Base64-encoded file bytes")
    name: str = Field(..., description="Original file name")
    mime_type: str = Field(..., description="MIME type of the file")
    size: int = Field(0, description="Size of the file in bytes")


class Message(CamelModel):
    """A single message in a chat session."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., description="Message id, unique within its session")
    role: Literal["user", "assistant"] = Field(..., description="Message role")
    content: str = Field(..., description="Message text")
    timestamp: datetime = Field(default_factory=utcnow)
    attachments: list[Attachment] | None = Field(
        None, description="Attachments (user messages only, omitted when empty)"
    )


class ChatSession(CamelModel):
    """Conversation history for one container."""

    id: str
    container_id: str
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def append(self, message: Message) -> Message:
        """Append a message and bump ``updated_at``."""
        self.messages.append(message)
        self.updated_at = max(self.updated_at, utcnow())
        return message


class ChatRequest(CamelModel):
    """Request body for the send-message endpoints."""

    message: str = Field(..., description="User message text")
    attachments: list[Attachment] = Field(default_factory=list)


class ChatExchange(CamelModel):
    """Result of a single-shot send: the user turn and the assistant reply."""

    user_message: Message
    assistant_message: Message


class StreamEvent(CamelModel):
    """
    One item of an incremental response.

    ``user`` carries the appended user message, ``done`` the persisted
    assistant message. ``assistant`` carries a snapshot: its ``content`` is
    the full text accumulated so far and replaces any earlier snapshot with
    the same id. It is never a delta.
    """

    type: Literal["user", "assistant", "done"]
    data: Message
