"""Per-connection session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol
from uuid import uuid4


class Transport(Protocol):
    """The slice of a WebSocket the gateway needs."""

    async def send_json(self, data: Any) -> None: ...


class SessionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    TERMINATED = "terminated"


@dataclass(eq=False)
class Session:
    """One live transport connection and the identity bound to it.

    ``subject_id`` can be bound exactly once; ``authenticated`` only ever
    goes from False to True.
    """

    transport: Transport
    session_id: str = field(default_factory=lambda: str(uuid4()))
    state: SessionState = SessionState.CONNECTING
    subject_id: Optional[str] = None
    authenticated: bool = False

    def bind_subject(self, subject_id: str) -> None:
        if self.subject_id is not None:
            raise RuntimeError(f"Session {self.session_id} is already bound")
        self.subject_id = subject_id

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def is_terminated(self) -> bool:
        return self.state is SessionState.TERMINATED
