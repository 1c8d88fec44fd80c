"""
Centralized error handlers for Flask applications.
"""

from http import HTTPStatus

from flask import Flask, jsonify
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from canteen.errors import DiningError
from canteen.logging_config import get_logger
from canteen.serializers import error_response

logger = get_logger(__name__)


def register_error_handlers(app: Flask) -> None:
    """
    Register centralized error handlers for the Flask app.

    Every error leaves as the standard JSON envelope with a stable ``code``.
    """

    @app.errorhandler(DiningError)
    def handle_dining_error(e: DiningError):
        """Handle controlled domain errors."""
        logger.warning("Dining error %s: %s", e.code, e.message)
        return (
            jsonify(error_response(e.message, code=e.code, details=e.details)),
            e.http_status,
        )

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(e: PydanticValidationError):
        """Handle Pydantic validation errors."""
        logger.warning("Pydantic validation error: %s", e)
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        return (
            jsonify(
                error_response("请求参数无效", code="VALIDATION_ERROR", details={"errors": errors})
            ),
            HTTPStatus.UNPROCESSABLE_ENTITY,
        )

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e: SQLAlchemyError):
        """Handle database errors."""
        logger.error("Database error: %s", e, exc_info=True)
        return (
            jsonify(error_response("数据库错误", code="DATABASE_ERROR")),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        """Handle HTTP exceptions from Werkzeug."""
        logger.warning("HTTP exception %s: %s", e.code, e.description)
        return jsonify(error_response(e.description or str(e), code=f"HTTP_{e.code}")), e.code

    @app.errorhandler(Exception)
    def handle_generic_exception(e: Exception):
        """Handle any unhandled exceptions."""
        logger.error("Unhandled exception: %s", e, exc_info=True)
        return (
            jsonify(error_response("服务器内部错误", code="SYSTEM_001")),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify(error_response("资源不存在", code="NOT_FOUND")), HTTPStatus.NOT_FOUND

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return (
            jsonify(error_response("请求方法不允许", code="HTTP_405")),
            HTTPStatus.METHOD_NOT_ALLOWED,
        )
