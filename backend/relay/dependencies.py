"""Dependency injection providers for FastAPI and the WebSocket endpoint."""

from __future__ import annotations

from relay.auth.verifier import TokenVerifier
from relay.gateway.gateway import SessionGateway
from relay.storage.connections import ConnectionRegistry
from relay.storage.database import Database
from relay.storage.messages import MessageStore

# Process-wide singletons; the event loop is single-threaded.
_database: Database | None = None
_verifier: TokenVerifier | None = None
_registry: ConnectionRegistry | None = None
_store: MessageStore | None = None
_gateway: SessionGateway | None = None


def get_database() -> Database:
    """Return singleton Database instance."""
    global _database
    if _database is None:
        _database = Database()
    return _database


def get_token_verifier() -> TokenVerifier:
    """Return singleton TokenVerifier instance."""
    global _verifier
    if _verifier is None:
        _verifier = TokenVerifier()
    return _verifier


def get_connection_registry() -> ConnectionRegistry:
    """Return singleton ConnectionRegistry; the database must be initialized."""
    global _registry
    if _registry is None:
        _registry = ConnectionRegistry(get_database().connections)
    return _registry


def get_message_store() -> MessageStore:
    """Return singleton MessageStore; the database must be initialized."""
    global _store
    if _store is None:
        _store = MessageStore(get_database().messages)
    return _store


def get_gateway() -> SessionGateway:
    """Return singleton SessionGateway wired to the shared collaborators."""
    global _gateway
    if _gateway is None:
        _gateway = SessionGateway(
            verifier=get_token_verifier(),
            registry=get_connection_registry(),
            store=get_message_store(),
        )
    return _gateway


def override_dependencies(
    *,
    database: Database | None = None,
    verifier: TokenVerifier | None = None,
    registry: ConnectionRegistry | None = None,
    store: MessageStore | None = None,
    gateway: SessionGateway | None = None,
) -> None:
    """Install pre-built instances (used by tests and embedding callers)."""
    global _database, _verifier, _registry, _store, _gateway
    _database = database
    _verifier = verifier
    _registry = registry
    _store = store
    _gateway = gateway


def reset_dependencies() -> None:
    override_dependencies()
