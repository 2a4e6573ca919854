"""Shared test fixtures for the message relay backend."""

import json
import os
import time
from collections.abc import Callable, Generator
from types import SimpleNamespace
from typing import Any

# Identity-pool settings are required at import time.
os.environ.setdefault("AWS_REGION", "eu-north-1")
os.environ.setdefault("USER_POOL_ID", "eu-north-1_TestPool")
os.environ.setdefault("CLIENT_ID", "test-client-id")

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from pymongo import ASCENDING

from relay.auth.verifier import TokenVerifier
from relay.config import settings
from relay.gateway.gateway import SessionGateway
from relay.storage.connections import ConnectionRegistry
from relay.storage.messages import MessageStore

KID = "test-key-1"


# ----------------------------------------------------------------------
# In-memory stand-ins for Motor collections and the WebSocket transport
# ----------------------------------------------------------------------


def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, expected in query.items():
        value = doc.get(key)
        if isinstance(expected, dict) and "$lt" in expected:
            if value is None or not value < expected["$lt"]:
                return False
        elif value != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self._docs.sort(key=lambda d: d[key], reverse=direction != ASCENDING)
        return self

    def limit(self, n: int) -> "FakeCursor":
        self._docs = self._docs[:n]
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._docs:
            yield doc


class FakeCollection:
    """Just enough of ``AsyncIOMotorCollection`` for the storage classes."""

    def __init__(self) -> None:
        self.docs: list[dict[str, Any]] = []
        self.indexes: list[tuple[Any, dict[str, Any]]] = []

    async def create_index(self, keys: Any, **kwargs: Any) -> str:
        self.indexes.append((keys, kwargs))
        return "index"

    async def update_one(self, query, update, upsert: bool = False):
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(update["$set"])
                return SimpleNamespace(matched_count=1, upserted_id=None)
        if upsert:
            doc = {**query, **update["$set"]}
            self.docs.append(doc)
            return SimpleNamespace(matched_count=0, upserted_id=len(self.docs))
        return SimpleNamespace(matched_count=0, upserted_id=None)

    async def insert_one(self, document: dict[str, Any]):
        document["_id"] = len(self.docs) + 1
        self.docs.append(document)
        return SimpleNamespace(inserted_id=document["_id"])

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    def find(self, query, projection=None) -> FakeCursor:
        hidden = [k for k, v in (projection or {}).items() if v == 0]
        found = [
            {k: v for k, v in doc.items() if k not in hidden}
            for doc in self.docs
            if _matches(doc, query)
        ]
        return FakeCursor(found)


class FakeDatabase:
    """Stands in for ``relay.storage.database.Database``."""

    def __init__(self) -> None:
        self.connections = FakeCollection()
        self.messages = FakeCollection()
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.initialized = False

    async def ping(self) -> bool:
        return self.initialized


class FakeTransport:
    """Records frames pushed to one client; optionally fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)


# ----------------------------------------------------------------------
# Tokens
# ----------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(rsa_private_key: rsa.RSAPrivateKey) -> dict[str, Any]:
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(rsa_private_key.public_key()))
    jwk.update({"kid": KID, "alg": "RS256", "use": "sig"})
    return {"keys": [jwk]}


@pytest.fixture
def make_token(rsa_private_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """Build an RS256 ID token; keyword overrides replace or drop claims."""

    def _make(
        sub: str = "u1",
        *,
        key: Any = None,
        algorithm: str = "RS256",
        headers: dict[str, Any] | None = None,
        **overrides: Any,
    ) -> str:
        now = int(time.time())
        claims = {
            "sub": sub,
            "aud": settings.client_id,
            "iss": settings.issuer,
            "iat": now,
            "exp": now + 3600,
            "token_use": "id",
        }
        for name, value in overrides.items():
            if value is None:
                claims.pop(name, None)
            else:
                claims[name] = value
        return jwt.encode(
            claims,
            key if key is not None else rsa_private_key,
            algorithm=algorithm,
            headers={"kid": KID} if headers is None else headers,
        )

    return _make


@pytest.fixture
def jwks_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def jwks_client(
    jwks: dict[str, Any], jwks_requests: list[httpx.Request]
) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        jwks_requests.append(request)
        if request.url != settings.jwks_url:
            return httpx.Response(404)
        return httpx.Response(200, json=jwks)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def verifier(jwks_client: httpx.AsyncClient) -> TokenVerifier:
    return TokenVerifier(settings=settings, client=jwks_client)


# ----------------------------------------------------------------------
# Storage and gateway
# ----------------------------------------------------------------------


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def registry(fake_db: FakeDatabase) -> ConnectionRegistry:
    return ConnectionRegistry(fake_db.connections)


@pytest.fixture
def store(fake_db: FakeDatabase) -> MessageStore:
    return MessageStore(fake_db.messages)


@pytest.fixture
def gateway(
    verifier: TokenVerifier, registry: ConnectionRegistry, store: MessageStore
) -> SessionGateway:
    return SessionGateway(verifier=verifier, registry=registry, store=store)


@pytest.fixture
def app_client(
    fake_db: FakeDatabase, verifier: TokenVerifier
) -> Generator[Any, None, None]:
    """Starlette test client running the real app over in-memory storage."""
    from fastapi.testclient import TestClient

    from relay.dependencies import override_dependencies, reset_dependencies
    from relay.main import app

    override_dependencies(database=fake_db, verifier=verifier)
    try:
        with TestClient(app) as client:
            yield client
    finally:
        reset_dependencies()


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll ``predicate`` until it holds; the app runs on another thread."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
