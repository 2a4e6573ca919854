"""Session gateway: authentication, connection bookkeeping and message routing.

Each session moves through::

    CONNECTING -> AUTHENTICATING -> ACTIVE -> TERMINATED

and TERMINATED is absorbing. The gateway keeps an in-process index of ACTIVE
sessions keyed by subject id (one user may hold several sessions, one per
device); that index is the only thing consulted when a message is fanned out.
The durable connection registry is written to keep it in step with reality
but is never read back here.

Everything runs on one event loop, so the index is mutated without locks.
Only this class adds or removes entries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from relay.auth.verifier import TokenVerifier
from relay.errors import AuthError, DeliveryError, StorageDeleteError, StorageWriteError
from relay.gateway.session import Session, SessionState
from relay.models.messages import EventType, Message, SendMessageRequest, event
from relay.storage.connections import ConnectionRegistry
from relay.storage.messages import MessageStore

logger = logging.getLogger(__name__)


class SessionGateway:
    """Drives the per-session state machine and routes direct messages."""

    def __init__(
        self,
        verifier: TokenVerifier,
        registry: ConnectionRegistry,
        store: MessageStore,
    ) -> None:
        self._verifier = verifier
        self._registry = registry
        self._store = store
        self._by_subject: dict[str, set[Session]] = {}

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def authenticate(self, session: Session, token: Optional[str]) -> bool:
        """Resolve the handshake credential; False means the session is terminated."""
        self._require_state(session, SessionState.CONNECTING)
        session.state = SessionState.AUTHENTICATING

        try:
            subject_id = await self._verifier.verify(token)
        except AuthError as exc:
            logger.warning(
                "Authentication failed for session %s: %s", session.session_id, exc
            )
            session.state = SessionState.TERMINATED
            return False

        session.bind_subject(subject_id)
        logger.info(
            "Authenticated user %s on session %s", subject_id, session.session_id
        )
        return True

    async def activate(self, session: Session) -> None:
        """Record the connection durably, then make the session routable.

        Raises:
            StorageWriteError: the registry write failed; the session is
                terminated and never becomes routable.
        """
        self._require_state(session, SessionState.AUTHENTICATING)
        subject_id = session.subject_id
        if subject_id is None:
            raise RuntimeError(f"Session {session.session_id} has no subject bound")

        try:
            await self._registry.register(session.session_id, subject_id)
        except StorageWriteError:
            logger.error(
                "Could not register session %s for user %s",
                session.session_id,
                subject_id,
            )
            # The upsert may have landed before the error surfaced.
            await self._deregister(session)
            session.state = SessionState.TERMINATED
            raise

        self._by_subject.setdefault(subject_id, set()).add(session)
        session.authenticated = True
        session.state = SessionState.ACTIVE
        logger.info(
            "Session %s active (%d live session(s) for user %s)",
            session.session_id,
            len(self._by_subject[subject_id]),
            subject_id,
        )

    async def terminate(self, session: Session) -> None:
        """Leave the routable set and drop the durable record. Safe to repeat."""
        if session.is_terminated:
            return

        was_active = session.is_active
        session.state = SessionState.TERMINATED
        if not was_active:
            return

        peers = self._by_subject.get(session.subject_id)
        if peers is not None:
            peers.discard(session)
            if not peers:
                del self._by_subject[session.subject_id]

        logger.info(
            "Disconnected user %s (session %s)", session.subject_id, session.session_id
        )
        await self._deregister(session)

    async def _deregister(self, session: Session) -> None:
        try:
            await self._registry.deregister(session.session_id)
        except StorageDeleteError as exc:
            logger.error(
                "Failed to delete connection %s: %s", session.session_id, exc
            )
        else:
            logger.info("Cleaned up connection %s", session.session_id)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def send(self, session: Session, payload: Any) -> Message:
        """Persist a direct message from ``session`` and push it to the recipient.

        Raises:
            pydantic.ValidationError: ``payload`` is not a send request.
            StorageWriteError: the message was not persisted; nothing was
                delivered.
        """
        if not session.is_active:
            raise RuntimeError(f"Session {session.session_id} is not active")

        request = SendMessageRequest.model_validate(payload)
        message = Message.create(
            sender_id=session.subject_id,
            recipient_id=request.to_user_id,
            message=request.message,
        )

        await self._store.append(message)

        delivered = await self.fan_out(message)
        logger.debug(
            "Message %s -> %s delivered live to %d session(s)",
            message.sender_id,
            message.recipient_id,
            delivered,
        )
        return message

    async def fan_out(self, message: Message) -> int:
        """Push ``message`` to every live session of its recipient.

        Returns the number of sessions the event was written to. A failing
        target is logged and skipped.
        """
        targets = self.sessions_for(message.recipient_id)
        if not targets:
            return 0

        frame = event(EventType.RECEIVE_MESSAGE, message.to_wire())
        results = await asyncio.gather(
            *(self._deliver(target, frame) for target in targets)
        )
        return sum(results)

    async def _deliver(self, target: Session, frame: dict) -> bool:
        try:
            await target.transport.send_json(frame)
        except Exception as exc:
            error = DeliveryError(target.session_id, exc)
            logger.warning("%s", error)
            return False
        return True

    def sessions_for(self, user_id: str) -> list[Session]:
        """Snapshot of the live sessions bound to ``user_id``."""
        return list(self._by_subject.get(user_id, ()))

    @property
    def active_count(self) -> int:
        return sum(len(sessions) for sessions in self._by_subject.values())

    @staticmethod
    def _require_state(session: Session, expected: SessionState) -> None:
        if session.state is not expected:
            raise RuntimeError(
                f"Session {session.session_id} is {session.state.value}, "
                f"expected {expected.value}"
            )
