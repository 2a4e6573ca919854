"""Conversation history endpoints."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from relay.auth.verifier import TokenVerifier, extract_bearer_token
from relay.dependencies import get_message_store, get_token_verifier
from relay.errors import AuthError, StorageError
from relay.models.messages import conversation_id
from relay.storage.messages import MessageStore

logger = logging.getLogger(__name__)
router = APIRouter()


async def current_user(
    authorization: Optional[str] = Header(default=None),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> str:
    """Resolve the caller's subject id from the bearer token."""
    try:
        return await verifier.verify(extract_bearer_token(authorization))
    except AuthError as exc:
        logger.warning("Rejected history request: %s", exc)
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )


@router.get("/{peer_id}/messages")
async def get_conversation_messages(
    peer_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    before: Optional[str] = None,
    user_id: str = Depends(current_user),
    store: MessageStore = Depends(get_message_store),
) -> dict[str, Any]:
    """Return the caller's messages with ``peer_id``, newest first.

    Pass the oldest ``timestamp`` of a page as ``before`` to fetch the
    next one.
    """
    conv_id = conversation_id(user_id, peer_id)
    try:
        messages = await store.list_conversation(conv_id, limit=limit, before=before)
    except StorageError as exc:
        logger.error("Failed to load conversation %s: %s", conv_id, exc)
        raise HTTPException(status_code=503, detail="Message store unavailable")

    return {
        "conversationId": conv_id,
        "messages": [m.to_wire() for m in messages],
    }
