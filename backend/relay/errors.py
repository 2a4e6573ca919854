"""Exception taxonomy shared by the verifier, storage layer and gateway."""


class RelayError(Exception):
    """Base class for all relay errors."""


class AuthError(RelayError):
    """Credential missing, invalid, expired, mis-addressed, or unverifiable.

    Every verification failure collapses into this one type so that callers
    cannot grant partial trust based on *why* a token was rejected.
    """


class StorageError(RelayError):
    """A durable store operation failed."""


class StorageWriteError(StorageError):
    """An insert or upsert did not complete."""


class StorageDeleteError(StorageError):
    """A delete did not complete."""


class DeliveryError(RelayError):
    """Pushing an event to one live session failed."""

    def __init__(self, session_id: str, cause: BaseException) -> None:
        super().__init__(f"Delivery to session {session_id} failed: {cause}")
        self.session_id = session_id
        self.cause = cause


__all__ = [
    "RelayError",
    "AuthError",
    "StorageError",
    "StorageWriteError",
    "StorageDeleteError",
    "DeliveryError",
]
