"""
Content normalization for the three provider wire formats.

Every builder emits the message text first, followed by one part per
attachment in the order they were attached. Images become the provider's
native image part. Documents are always decoded and inlined as a labeled
text part; no provider receives them as files.
"""

import base64
from collections.abc import Iterable, Sequence
from typing import Any

from codechat.models.chat import Attachment, Message


def decode_document(attachment: Attachment) -> str:
    """Decode a base64 document attachment to text (invalid UTF-8 is replaced)."""
    return base64.b64decode(attachment.data).decode("utf-8", errors="replace")


def document_block(attachment: Attachment) -> str:
    """Labeled text block that carries a document's content."""
    return f'\n\nDocument "{attachment.name}" content:\n{decode_document(attachment)}'


def data_uri(attachment: Attachment) -> str:
    return f"data:{attachment.mime_type};base64,{attachment.data}"


def build_openai_content(text: str, attachments: Iterable[Attachment] = ()) -> list[dict[str, Any]]:
    content: list[dict[str, Any]] = [{"type": "text", "text": text}]
    for attachment in attachments:
        if attachment.type == "image":
            content.append({"type": "image_url", "image_url": {"url": data_uri(attachment)}})
        elif attachment.type == "document":
            content.append({"type": "text", "text": document_block(attachment)})
    return content


def build_anthropic_content(text: str, attachments: Iterable[Attachment] = ()) -> list[dict[str, Any]]:
    content: list[dict[str, Any]] = [{"type": "text", "text": text}]
    for attachment in attachments:
        if attachment.type == "image":
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": attachment.mime_type,
                        "data": attachment.data,
                    },
                }
            )
        elif attachment.type == "document":
            content.append({"type": "text", "text": document_block(attachment)})
    return content


def build_gemini_parts(text: str, attachments: Iterable[Attachment] = ()) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [{"text": text}]
    for attachment in attachments:
        if attachment.type == "image":
            parts.append({"inlineData": {"mimeType": attachment.mime_type, "data": attachment.data}})
        elif attachment.type == "document":
            parts.append({"text": document_block(attachment)})
    return parts


def to_openai_messages(system_prompt: str, messages: Sequence[Message]) -> list[dict[str, Any]]:
    """
    System prompt followed by the full history.

    Only user messages that carry attachments are expanded into content
    parts; all other messages keep plain string content.
    """
    converted: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for msg in messages:
        if msg.role == "user" and msg.attachments:
            content: Any = build_openai_content(msg.content, msg.attachments)
        else:
            content = msg.content
        converted.append({"role": msg.role, "content": content})
    return converted


def to_anthropic_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Full history as part arrays; the system prompt travels separately."""
    return [
        {"role": msg.role, "content": build_anthropic_content(msg.content, msg.attachments or ())}
        for msg in messages
    ]


def to_gemini_history(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Prior turns as plain text parts, with ``assistant`` renamed to ``model``."""
    return [
        {"role": "model" if msg.role == "assistant" else "user", "parts": [{"text": msg.content}]}
        for msg in messages
    ]


def to_gemini_contents(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """
    History plus the new user turn.

    The newest message is the in-flight user turn and is the only one whose
    attachments are expanded.
    """
    if not messages:
        return []
    *history, latest = messages
    contents = to_gemini_history(history)
    contents.append({"role": "user", "parts": build_gemini_parts(latest.content, latest.attachments or ())})
    return contents
