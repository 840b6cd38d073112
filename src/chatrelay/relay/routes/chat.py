"""Chat endpoints.

POST /chat/init -- session acknowledgment
POST /chat/send -- publish to the global or a local channel
GET /chat/messages -- poll a channel for messages newer than ``after``
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from chatrelay.protocol import ValidationError
from chatrelay.relay.admission import enforce_limit, general_rate_limit
from chatrelay.relay.models import (
    InitRequest,
    InitResponse,
    MessageData,
    MessagesResponse,
    SendRequest,
    SendResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", dependencies=[Depends(general_rate_limit)])


@router.post("/init", response_model=InitResponse)
async def init_session(body: InitRequest, request: Request) -> InitResponse:
    """Acknowledge a client session.  Nothing about the caller is stored."""
    enforce_limit(
        request,
        request.app.state.init_limiter,
        user_id=body.user_id,
        detail="Too many session requests.",
    )
    service = request.app.state.relay_service
    try:
        user_id = service.init_session(body.user_id, body.username)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return InitResponse(user_id=user_id)


@router.post("/send", response_model=SendResponse)
async def send_message(body: SendRequest, request: Request) -> SendResponse:
    """Publish a message.

    Order of operations:
    1. General-traffic limit (router dependency)
    2. Send limit, keyed by ``userId`` or the redacted origin
    3. Validation (400, nothing stored)
    4. Store
    """
    enforce_limit(
        request,
        request.app.state.send_limiter,
        user_id=body.user_id,
        detail="You are sending messages too fast! Slow down.",
    )
    service = request.app.state.relay_service
    try:
        message = service.send(
            body.message,
            sender_id=body.user_id,
            username=body.username,
            display_name=body.display_name,
            channel_class=body.channel_class,
            channel_id=body.channel_id,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SendResponse(message_data=MessageData.from_message(message))


@router.get("/messages", response_model=MessagesResponse)
async def get_messages(
    request: Request,
    channel_class: str | None = Query(
        default=None, alias="channelClass", description="'global' or 'local'"
    ),
    chat_type: str | None = Query(default=None, alias="chatType", include_in_schema=False),
    channel_id: str | None = Query(default=None, alias="channelId"),
    server_id: str | None = Query(default=None, alias="serverId", include_in_schema=False),
    after: str | None = Query(default=None),
    limit: str | None = Query(default=None),
) -> MessagesResponse:
    """Return messages newer than ``after`` (ms since epoch), oldest first."""
    service = request.app.state.relay_service
    try:
        messages = service.fetch(
            channel_class=channel_class if channel_class is not None else chat_type,
            channel_id=channel_id if channel_id is not None else server_id,
            after=after,
            limit=limit,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    data = [MessageData.from_message(m) for m in messages]
    return MessagesResponse(messages=data, count=len(data))
