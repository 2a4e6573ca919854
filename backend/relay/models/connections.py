"""Durable connection record models."""

from relay.models.messages import CamelModel


class ConnectionRecord(CamelModel):
    """One live, authenticated session: ``{connectionId, userId}``."""

    connection_id: str
    user_id: str
