"""
JWT Service - bearer token validation for the canteen API.

Tokens are issued by the identity service; the canteen only verifies them
and reads the user id. Role, department and status always come from the
directory, never from claims.
"""

from __future__ import annotations

import os
from typing import Any

import jwt
from flask import Request, current_app

from canteen.config import get_active_config

JWT_ALGORITHM = "HS256"

# Tolerated clock skew between the identity service and the canteen hosts.
JWT_LEEWAY_SECONDS = 30

USER_ID_CLAIMS = ("sub", "user_id")


class JWTError(Exception):
    """Base exception for JWT errors."""

    def __init__(self, message: str, status: int = 401):
        self.message = message
        self.status = status
        super().__init__(message)


class TokenExpiredError(JWTError):
    def __init__(self):
        super().__init__("Token expired", 401)


class InvalidTokenError(JWTError):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, 401)


def get_jwt_secret() -> str:
    """
    Signing secret shared with the identity service.

    ``JWT_SECRET_KEY`` wins when the identity service uses a dedicated key;
    otherwise the app's ``SECRET_KEY`` (or the active config's) is used.
    """
    secret = os.getenv("JWT_SECRET_KEY")
    if secret:
        return secret
    try:
        secret = current_app.config.get("SECRET_KEY")
    except RuntimeError:
        secret = None
    return secret or get_active_config().secret_key


def user_id_from_payload(payload: dict[str, Any] | None) -> str | None:
    """The directory user id a token speaks for, as a string."""
    if not payload:
        return None
    for claim in USER_ID_CLAIMS:
        value = payload.get(claim)
        if value not in (None, ""):
            return str(value)
    return None


def decode_token(token: str, verify_type: str | None = None) -> dict[str, Any]:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string
        verify_type: Expected token type ('access'); tokens without a type claim pass

    Raises:
        TokenExpiredError: If token has expired
        InvalidTokenError: If the signature, type or user id claim is wrong
    """
    try:
        payload = jwt.decode(
            token, get_jwt_secret(), algorithms=[JWT_ALGORITHM], leeway=JWT_LEEWAY_SECONDS
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError() from None
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(str(e)) from None

    token_type = payload.get("type")
    if verify_type and token_type and token_type != verify_type:
        raise InvalidTokenError(f"Expected {verify_type} token, got {token_type}")
    if user_id_from_payload(payload) is None:
        raise InvalidTokenError("Token carries no user id")

    return payload


def extract_token_from_request(request: Request) -> str | None:
    """Bearer token from the Authorization header, else X-Access-Token."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()

    return request.headers.get("X-Access-Token") or None
