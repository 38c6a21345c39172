"""
Chat router — per-container conversation endpoints.

Single-shot replies are returned as JSON; incremental replies are sent as
server-sent events, one ``data:`` frame per stream event.
"""

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from codechat.models.chat import ChatExchange, ChatRequest, ChatSession
from codechat.services.chat import ChatAdapter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def get_chat_adapter(request: Request) -> ChatAdapter:
    """
    Dependency injection for the chat adapter.
    Initialized once in main.py and stored in app.state.
    """
    return request.app.state.chat_adapter


@router.post("/{container_id}/messages", response_model=ChatExchange)
async def send_message(
    container_id: str,
    body: ChatRequest,
    adapter: ChatAdapter = Depends(get_chat_adapter),
) -> ChatExchange:
    """Send a message about the container's codebase and wait for the full reply."""
    return await adapter.send_message(container_id, body.message, body.attachments)


@router.post("/{container_id}/messages/stream")
async def send_message_stream(
    container_id: str,
    body: ChatRequest,
    adapter: ChatAdapter = Depends(get_chat_adapter),
) -> StreamingResponse:
    """
    Send a message and stream the reply.

    Each ``assistant`` frame carries the full reply text so far. A failure
    after the stream has started is reported as a final ``error`` frame
    instead of ``done``.
    """

    async def frames() -> AsyncIterator[str]:
        try:
            async for event in adapter.send_message_stream(container_id, body.message, body.attachments):
                payload = event.model_dump(mode="json", by_alias=True, exclude_none=True)
                yield f"data: {json.dumps(payload)}\n\n"
        except Exception as exc:
            logger.exception("chat.stream.error: container=%s", container_id)
            yield f"data: {json.dumps({'type': 'error', 'data': {'message': str(exc)}})}\n\n"

    return StreamingResponse(
        frames(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/{container_id}/session", response_model=ChatSession)
async def get_container_session(
    container_id: str,
    adapter: ChatAdapter = Depends(get_chat_adapter),
) -> ChatSession:
    """Return the container's session, creating an empty one if needed."""
    return adapter.sessions.get_or_create(container_id)


@router.get("/sessions/{session_id}", response_model=ChatSession)
async def get_session(
    session_id: str,
    adapter: ChatAdapter = Depends(get_chat_adapter),
) -> ChatSession:
    session = adapter.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session
