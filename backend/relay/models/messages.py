"""Message models for WebSocket and storage communication."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CONVERSATION_SEPARATOR = "_"


def conversation_id(user_a: str, user_b: str) -> str:
    """Return the partition key shared by both participants of a conversation.

    The pair is sorted first, so ``conversation_id(a, b)`` always equals
    ``conversation_id(b, a)``.
    """
    return CONVERSATION_SEPARATOR.join(sorted((user_a, user_b)))


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. ``...T09:15:02.123Z``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CamelModel(BaseModel):
    """Base model that serializes to the camelCase wire format."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class EventType(str, Enum):
    """WebSocket event discriminator."""

    SEND_MESSAGE = "send_message"
    RECEIVE_MESSAGE = "receive_message"
    MESSAGE_SENT = "message_sent"
    ERROR = "error"


class SendMessageRequest(CamelModel):
    """Payload of an inbound ``send_message`` event."""

    to_user_id: str = Field(min_length=1)
    message: str


class Message(CamelModel):
    """Persisted point-to-point message. Never mutated after creation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    conversation_id: str
    timestamp: str = Field(default_factory=utc_timestamp)
    sender_id: str
    recipient_id: str
    message: str
    read: bool = False

    @classmethod
    def create(cls, sender_id: str, recipient_id: str, message: str) -> "Message":
        return cls(
            conversation_id=conversation_id(sender_id, recipient_id),
            sender_id=sender_id,
            recipient_id=recipient_id,
            message=message,
        )


class ErrorPayload(BaseModel):
    """Body of an outbound ``error`` event."""

    code: str
    detail: str


def event(event_type: EventType, data: dict) -> dict:
    """Wrap a payload in the ``{"event": ..., "data": ...}`` frame envelope."""
    return {"event": event_type.value, "data": data}
