"""Auth module - bearer token verification against the user pool JWKS."""

from .verifier import TokenVerifier, extract_bearer_token

__all__ = ["TokenVerifier", "extract_bearer_token"]
