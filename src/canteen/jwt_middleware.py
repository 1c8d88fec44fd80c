"""
JWT Middleware for Flask.

Provides request-level JWT validation and user context injection. Only the
user id is taken from the token; role and department are always read from
the directory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from functools import wraps
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from flask import g, jsonify, request

from canteen.jwt_service import (
    InvalidTokenError,
    TokenExpiredError,
    decode_token,
    extract_token_from_request,
    user_id_from_payload,
)
from canteen.serializers import error_response
from canteen.services import directory_service

if TYPE_CHECKING:
    from flask import Flask

logger = logging.getLogger(__name__)


def init_jwt_middleware(app: Flask) -> None:
    """
    Initialize JWT middleware for a Flask app.

    Sets up a before_request handler that validates the bearer token and
    stores its payload in ``g.current_user``.
    """

    @app.before_request
    def load_jwt_user():
        g.current_user = None

        token = extract_token_from_request(request)
        if not token:
            return

        try:
            g.current_user = decode_token(token, verify_type="access")
        except TokenExpiredError:
            logger.debug("Expired token on %s", request.path)
        except InvalidTokenError as e:
            logger.warning("Invalid token on %s: %s", request.path, e)


def get_current_user() -> dict[str, Any] | None:
    return getattr(g, "current_user", None)


def get_user_id() -> str | None:
    """Current user id from the ``sub`` (or ``user_id``) claim."""
    return user_id_from_payload(get_current_user())


def _unauthorized():
    return (
        jsonify(error_response("需要登录", code="AUTH_REQUIRED")),
        HTTPStatus.UNAUTHORIZED,
    )


def jwt_required(f):
    """
    Decorator to require valid JWT for a route.

    Returns 401 if no valid token present.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_user_id():
            return _unauthorized()
        return f(*args, **kwargs)

    return decorated_function


def role_required(required_roles: str | Iterable[str]):
    """
    Decorator factory to require one of the given directory roles.

    The role is looked up for the token's user on every request.
    """
    if isinstance(required_roles, str):
        required_roles = [required_roles]
    required_roles = set(required_roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_id = get_user_id()
            if not user_id:
                return _unauthorized()

            user = directory_service.get_user(user_id)
            if user is None or not user.is_active or user.role not in required_roles:
                roles_str = ", ".join(sorted(required_roles))
                logger.warning(
                    "Role check failed for %s on %s (required: %s)",
                    user_id,
                    request.path,
                    roles_str,
                )
                return (
                    jsonify(
                        error_response(
                            f"需要以下角色之一: {roles_str}", code="INSUFFICIENT_PERMISSIONS"
                        )
                    ),
                    HTTPStatus.FORBIDDEN,
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator
