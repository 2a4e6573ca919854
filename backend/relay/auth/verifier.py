"""ID-token verification against the identity provider's published key set.

Tokens are RS256-signed JWTs. The signing key is selected by the ``kid``
header and fetched from the user pool's JWKS endpoint over HTTPS; keys are
cached per ``kid`` and the key set is re-fetched only when an unknown ``kid``
shows up (which is what happens after the provider rotates keys).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
import jwt
from jwt.exceptions import (
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    PyJWTError,
)

from relay.config import Settings, settings as default_settings
from relay.errors import AuthError

logger = logging.getLogger(__name__)

EXPECTED_ALGORITHM = "RS256"
REQUIRED_CLAIMS = ["exp", "iss", "aud", "sub"]


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class TokenVerifier:
    """Resolve a bearer token to its subject claim or raise ``AuthError``.

    Lifecycle:
        verifier = TokenVerifier()
        await verifier.initialize()   # call once at startup
        subject = await verifier.verify(token)
        await verifier.close()        # call once at shutdown
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        cfg = settings or default_settings
        self.jwks_url = cfg.jwks_url
        self.issuer = cfg.issuer
        self.audience = cfg.client_id
        self._timeout = cfg.jwks_timeout_seconds
        self._leeway = cfg.token_leeway_seconds
        self._client = client
        self._keys: dict[str, Any] = {}
        self._fetch_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the HTTP client unless one was injected."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        logger.info("TokenVerifier initialized (jwks_url=%s)", self.jwks_url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("TokenVerifier closed")

    @property
    def cached_key_ids(self) -> list[str]:
        return list(self._keys)

    async def verify(self, token: str | None) -> str:
        """Verify ``token`` and return its ``sub`` claim.

        Raises:
            AuthError: for every failure mode, including key-set fetch errors.
        """
        if not token:
            raise AuthError("No token provided")

        try:
            header = jwt.get_unverified_header(token)
        except PyJWTError as exc:
            raise AuthError(f"Malformed token: {exc}") from exc

        # Checked before any key lookup so "none"/HMAC tokens never reach decode.
        algorithm = header.get("alg")
        if algorithm != EXPECTED_ALGORITHM:
            raise AuthError(f"Unexpected signing algorithm: {algorithm!r}")

        kid = header.get("kid")
        if not kid:
            raise AuthError("Token header has no key id")

        key = await self._signing_key(kid)

        try:
            claims = jwt.decode(
                token,
                key=key,
                algorithms=[EXPECTED_ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                leeway=self._leeway,
                options={"require": REQUIRED_CLAIMS},
            )
        except ExpiredSignatureError as exc:
            raise AuthError("Token has expired") from exc
        except InvalidSignatureError as exc:
            raise AuthError("Token signature is invalid") from exc
        except InvalidAudienceError as exc:
            raise AuthError("Token audience is invalid") from exc
        except InvalidIssuerError as exc:
            raise AuthError("Token issuer is invalid") from exc
        except PyJWTError as exc:
            raise AuthError(f"Token is invalid: {exc}") from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthError("Token has no subject")
        return subject

    # ------------------------------------------------------------------
    # Key set
    # ------------------------------------------------------------------

    async def _signing_key(self, kid: str) -> Any:
        key = self._keys.get(kid)
        if key is not None:
            return key

        async with self._fetch_lock:
            # Another coroutine may have refreshed while we waited.
            if kid not in self._keys:
                await self._refresh_keys()

        key = self._keys.get(kid)
        if key is None:
            raise AuthError(f"Unknown signing key id: {kid}")
        return key

    async def _refresh_keys(self) -> None:
        if self._client is None:
            raise AuthError("TokenVerifier not initialized. Call initialize() first.")

        logger.debug("Fetching JWKS from %s", self.jwks_url)
        try:
            response = await self._client.get(self.jwks_url)
            response.raise_for_status()
            jwks = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("JWKS fetch from %s failed: %s", self.jwks_url, exc)
            raise AuthError("Unable to fetch signing keys") from exc
        if not isinstance(jwks, dict):
            raise AuthError("JWKS response is not a key set")

        loaded = 0
        for jwk in jwks.get("keys", []):
            kid = jwk.get("kid")
            if not kid or jwk.get("kty") != "RSA":
                continue
            try:
                self._keys[kid] = jwt.PyJWK(jwk, algorithm=EXPECTED_ALGORITHM).key
                loaded += 1
            except PyJWTError as exc:
                logger.warning("Skipping unusable JWK %s: %s", kid, exc)
        logger.info("Loaded %d signing key(s) from JWKS", loaded)
