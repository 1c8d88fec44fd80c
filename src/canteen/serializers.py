"""
Serializers for consistent API responses.
"""

from typing import Any

from canteen.constants import DINING_STATUS_TEXT, MEAL_TYPE_NAMES, ORDER_STATUS_TEXT
from canteen.datetime_utils import to_iso
from canteen.models import ConfirmationLog, Order


def _safe_float(value) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def serialize_order(order: Order) -> dict[str, Any]:
    """Serialize Order model with its member snapshot."""
    return {
        "id": order.id,
        "menu_id": order.menu_id,
        "department_id": order.department_id,
        "department_name": order.department_name,
        "registrant_id": order.registrant_id,
        "registrant_name": order.registrant_name,
        "member_ids": order.member_ids,
        "member_names": order.member_names,
        "member_count": order.member_count,
        "dining_date": order.dining_date.isoformat(),
        "meal_type": order.meal_type,
        "meal_type_name": MEAL_TYPE_NAMES.get(order.meal_type, order.meal_type),
        "status": order.status,
        "status_text": ORDER_STATUS_TEXT.get(order.status, order.status),
        "dining_status": order.dining_status,
        "dining_status_text": DINING_STATUS_TEXT.get(order.dining_status, order.dining_status),
        "total_amount": _safe_float(order.total_amount),
        "actual_dining_time": to_iso(order.actual_dining_time),
        "remark": order.remark,
        "created_at": to_iso(order.created_at),
        "updated_at": to_iso(order.updated_at),
    }


def serialize_confirmation_log(log: ConfirmationLog) -> dict[str, Any]:
    return {
        "id": log.id,
        "order_id": log.order_id,
        "user_id": log.user_id,
        "user_name": log.user_name,
        "confirmation_type": log.confirmation_type,
        "confirmation_time": to_iso(log.confirmation_time),
        "remark": log.remark,
        "confirmed_by": log.confirmed_by,
    }


def serialize_confirmation(log: ConfirmationLog, order: Order) -> dict[str, Any]:
    """Result of a successful confirmation: the log plus the order's new state."""
    return {
        "log": serialize_confirmation_log(log),
        "order_id": order.id,
        "dining_status": order.dining_status,
        "actual_dining_time": to_iso(order.actual_dining_time),
    }


def paginated_response(
    items: list[Any],
    total: int,
    page: int,
    limit: int,
) -> dict[str, Any]:
    """
    Create a standardized paginated response.

    Args:
        items: List of serialized items for current page
        total: Total count of items across all pages
        page: Current page number (1-indexed)
        limit: Items per page

    Returns:
        Standardized response dict with data and meta
    """
    total_pages = (total + limit - 1) // limit if limit > 0 else 0

    return {
        "data": items,
        "meta": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def success_response(data: Any, message: str | None = None) -> dict[str, Any]:
    """Create a standardized success response."""
    response = {"status": "success", "data": data, "error": None}
    if message:
        response["message"] = message
    return response


def error_response(
    error: str, code: str | None = None, details: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Create a standardized error response."""
    response = {"status": "error", "data": None, "error": error}
    if code:
        response["code"] = code
    if details:
        response["details"] = details
    return response
