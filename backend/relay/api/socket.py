"""WebSocket endpoint for real-time direct messaging."""

import json
import logging

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from relay.auth.verifier import extract_bearer_token
from relay.dependencies import get_gateway
from relay.errors import StorageWriteError
from relay.gateway.gateway import SessionGateway
from relay.gateway.session import Session
from relay.models.messages import ErrorPayload, EventType, event

logger = logging.getLogger(__name__)


async def websocket_relay(websocket: WebSocket) -> None:
    """Handle one client connection for its whole lifetime.

    Protocol:
        Handshake carries the ID token as ``?token=...`` or an
        ``Authorization: Bearer ...`` header; without a valid one the
        handshake is refused with close code 1008.
        Client sends JSON: {"event": "send_message",
                            "data": {"toUserId": "...", "message": "..."}}
        Server sends JSON: {"event": "receive_message"|"message_sent"|"error",
                            "data": {...}}
    """
    gateway = get_gateway()
    session = Session(transport=websocket)

    token = websocket.query_params.get("token") or extract_bearer_token(
        websocket.headers.get("authorization")
    )
    if not await gateway.authenticate(session, token):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # Routable before the client learns the handshake succeeded.
    try:
        await gateway.activate(session)
    except StorageWriteError:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    try:
        await websocket.accept()
        while True:
            ws_message = await websocket.receive()

            if ws_message.get("type") == "websocket.disconnect":
                logger.info(
                    "WebSocket disconnect received: session_id=%s", session.session_id
                )
                break

            raw = ws_message.get("text")
            if not raw:
                await _send_error(
                    websocket, "unsupported_event", "Only JSON text frames are accepted"
                )
                continue

            await _handle_frame(websocket, gateway, session, raw)

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected: session_id=%s", session.session_id)
    except Exception:
        logger.exception("WebSocket error for session %s", session.session_id)
    finally:
        await gateway.terminate(session)


async def _handle_frame(
    websocket: WebSocket,
    gateway: SessionGateway,
    session: Session,
    raw: str,
) -> None:
    """Dispatch one inbound frame; client mistakes become ``error`` events."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        await _send_error(websocket, "invalid_json", "Invalid JSON")
        return

    if not isinstance(data, dict):
        await _send_error(websocket, "invalid_payload", "Frame must be a JSON object")
        return

    if data.get("event") != EventType.SEND_MESSAGE.value:
        await _send_error(
            websocket, "unsupported_event", f"Unsupported event: {data.get('event')!r}"
        )
        return

    try:
        message = await gateway.send(session, data.get("data"))
    except ValidationError as exc:
        await _send_error(websocket, "invalid_payload", str(exc))
        return
    except StorageWriteError:
        logger.error(
            "Message from %s was not persisted (session %s)",
            session.subject_id,
            session.session_id,
        )
        await _send_error(websocket, "persist_failed", "Message could not be stored")
        return

    await websocket.send_json(event(EventType.MESSAGE_SENT, message.to_wire()))


async def _send_error(websocket: WebSocket, code: str, detail: str) -> None:
    """Send a structured error event to the client."""
    payload = ErrorPayload(code=code, detail=detail)
    await websocket.send_json(event(EventType.ERROR, payload.model_dump()))
