"""
Request and business-event audit trail on the ``audit`` logger.

Every line follows USER|ACTION|TYPE|CODE|RETVAL|REQUEST_ID|TIME.
"""

import logging
import time

from flask import Flask, Response, g, has_request_context, request

from canteen.jwt_middleware import get_user_id

logger = logging.getLogger("audit")


def _request_id() -> str:
    return request.headers.get("X-Request-ID") or "NO_REQUEST_ID"


def _elapsed_ms() -> int:
    start = getattr(g, "start_time", None)
    return int((time.time() - start) * 1000) if start else 0


def init_audit_middleware(app: Flask) -> None:
    @app.before_request
    def start_timer():
        g.start_time = time.time()

    @app.after_request
    def log_request(response: Response):
        user_id = get_user_id() or "ANONYMOUS"
        status_code = response.status_code
        size = 0 if response.direct_passthrough else (response.content_length or 0)

        log_line = (
            f"{user_id}|{request.method} {request.path}|RESPONSE|{status_code}"
            f"|{size} bytes|{_request_id()}|{_elapsed_ms()}ms"
        )
        if status_code >= 500:
            logger.error(log_line)
        elif status_code >= 400:
            logger.warning(log_line)
        else:
            logger.info(log_line)
        return response


def audit_action(action_name: str, details: str = "", status: str = "OK") -> None:
    """
    Record a ledger event (booking, cancellation, confirmation) as an INTERNAL line.

    Outside a request (scripts, shell) the user is SYSTEM.
    """
    if has_request_context():
        user_id = get_user_id() or "ANONYMOUS"
        request_id = _request_id()
        duration = _elapsed_ms()
    else:
        user_id, request_id, duration = "SYSTEM", "BACKGROUND", 0

    logger.info(f"{user_id}|{action_name}|INTERNAL|{status}|{details}|{request_id}|{duration}ms")
