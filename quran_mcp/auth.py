"""
Caller admission: Bearer JWT validation.

Callers reach the MCP endpoint with an `Authorization: Bearer <jwt>` header
issued by our identity provider (or by scripts/generate_token.py locally).
This module only answers "who is calling?". The Quran tools are open to
every admitted caller, so no scope or role checks happen here.

Token structure (JWT payload):
    {
        "sub": "octocat",              # Caller login, required
        "name": "The Octocat",         # Display name, optional
        "email": "octocat@example.com",# Optional
        "exp": 1738800000              # Expiry (Unix timestamp), required
    }

Tokens are HS256-signed with MCP_JWT_SECRET_KEY.
"""

from dataclasses import dataclass

import jwt

from quran_mcp.config import settings


class AuthError(Exception):
    """
    Raised when a caller can't be authenticated, for any reason.

    One exception type for every failure (missing header, bad signature,
    expired, malformed claims); the detailed reason goes to the server log,
    not to the caller.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code to return (401 for auth failures)
    """

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class Caller:
    """
    Identity of an admitted caller.

    Attributes:
        subject: The "sub" claim (the caller's login)
        name: Display name, if the token carries one
        email: Email address, if the token carries one
    """

    subject: str
    name: str | None = None
    email: str | None = None


def _optional_str(payload: dict, claim: str) -> str | None:
    value = payload.get(claim)
    if value is None:
        return None
    if not isinstance(value, str):
        raise AuthError(f"Invalid {claim} claim: must be a string")
    return value


def authenticate_caller(authorization_header: str | None) -> Caller:
    """
    Validate a Bearer token from the Authorization header.

    Args:
        authorization_header: Raw header value, expected "Bearer <jwt-token>"

    Returns:
        The Caller identified by the token

    Raises:
        AuthError: If the header is missing or malformed, or the token is
                   invalid, expired, or lacks a usable subject
    """
    if not authorization_header:
        raise AuthError("Missing Authorization header")

    scheme, _, token = authorization_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Invalid Authorization header format, expected 'Bearer <token>'")

    try:
        payload = jwt.decode(
            token.strip(),
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}")

    subject = payload["sub"]
    if not isinstance(subject, str) or not subject:
        raise AuthError("Invalid sub claim: must be a non-empty string")

    return Caller(
        subject=subject,
        name=_optional_str(payload, "name"),
        email=_optional_str(payload, "email"),
    )
