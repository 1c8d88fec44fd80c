"""
Read-only reporting over the order ledger.

Nothing here writes: per-user confirmation status, confirmation history and
department confirmation statistics are derived on demand.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from canteen.constants import (
    DINING_STATUS_TEXT,
    MEAL_TYPE_NAMES,
    ORDER_STATUS_TEXT,
    STATS_ROLES,
    DiningStatus,
    MealType,
    OrderStatus,
    Roles,
)
from canteen.datetime_utils import local_today, to_iso
from canteen.db import get_session
from canteen.errors import AuthorizationError, NotFoundError, ValidationError
from canteen.logging_config import get_logger
from canteen.models import Order, OrderMember
from canteen.serializers import paginated_response, serialize_confirmation_log
from canteen.services import directory_service
from canteen.validation import parse_dining_date, validate_pagination

logger = get_logger(__name__)


def _involving(user_id: str):
    """Orders the user registered or is a member of."""
    return or_(
        Order.registrant_id == user_id,
        Order.members.any(OrderMember.user_id == user_id),
    )


def _unregistered_entry() -> dict[str, Any]:
    return {
        "is_registered": False,
        "order_id": None,
        "status": None,
        "dining_status": None,
        "status_text": "未报餐",
        "confirmation_text": "未确认",
        "actual_dining_time": None,
        "register_time": None,
        "remark": None,
    }


def get_user_confirmation_status(
    user_id: str, dining_date: str | None = None, *, now: datetime | None = None
) -> dict[str, Any]:
    """Registration and confirmation state of each meal of one day for one user."""
    user = directory_service.get_user(user_id)
    if user is None:
        raise NotFoundError(
            "用户不存在", code="USER_NOT_FOUND", details={"missing_ids": [user_id]}
        )

    query_date = parse_dining_date(dining_date) if dining_date else local_today(now)

    with get_session() as session:
        orders = session.scalars(
            select(Order)
            .where(
                Order.dining_date == query_date,
                Order.status != OrderStatus.CANCELLED.value,
                _involving(user_id),
            )
            .order_by(Order.created_at)
        ).all()

        # Latest order per meal wins.
        latest: dict[str, Order] = {}
        for order in orders:
            latest[order.meal_type] = order

        meals: dict[str, dict[str, Any]] = {}
        for meal_type in MealType.all_values():
            order = latest.get(meal_type)
            if order is None:
                meals[meal_type] = _unregistered_entry()
                continue
            meals[meal_type] = {
                "is_registered": True,
                "order_id": order.id,
                "status": order.status,
                "dining_status": order.dining_status,
                "status_text": ORDER_STATUS_TEXT.get(order.status, "未知状态"),
                "confirmation_text": DINING_STATUS_TEXT.get(order.dining_status, "未确认"),
                "actual_dining_time": to_iso(order.actual_dining_time),
                "register_time": to_iso(order.created_at),
                "remark": order.remark,
            }

    entries = list(meals.values())
    return {
        "user_id": user.id,
        "user_name": user.name,
        "department_id": user.department_id,
        "department_name": user.department_name,
        "query_date": query_date.isoformat(),
        "meal_confirmation_status": meals,
        "summary": {
            "total_registered": sum(1 for e in entries if e["is_registered"]),
            "total_confirmed": sum(
                1 for e in entries if e["dining_status"] == DiningStatus.DINED.value
            ),
            "pending_confirmation": sum(
                1
                for e in entries
                if e["is_registered"] and e["dining_status"] == DiningStatus.ORDERED.value
            ),
            "unregistered_count": sum(1 for e in entries if not e["is_registered"]),
        },
    }


def get_confirmation_history(
    user_id: str,
    dining_date: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    dining_status: str | None = None,
    page: int | None = 1,
    limit: int | None = None,
) -> dict[str, Any]:
    """Paginated orders involving the user, newest first, with their confirmation log."""
    page, limit = validate_pagination(page, limit)

    base_stmt = select(Order).where(_involving(user_id))
    if dining_date:
        base_stmt = base_stmt.where(Order.dining_date == parse_dining_date(dining_date))
    else:
        if start_date:
            base_stmt = base_stmt.where(
                Order.dining_date >= parse_dining_date(start_date, "start_date")
            )
        if end_date:
            base_stmt = base_stmt.where(Order.dining_date <= parse_dining_date(end_date, "end_date"))
    if dining_status:
        if dining_status not in {status.value for status in DiningStatus}:
            raise ValidationError(
                f"不支持的就餐状态: {dining_status}",
                code="VALIDATION_ERROR",
                details={"dining_status": dining_status},
            )
        base_stmt = base_stmt.where(Order.dining_status == dining_status)

    with get_session() as session:
        total = session.scalar(select(func.count()).select_from(base_stmt.subquery())) or 0
        stmt = (
            base_stmt.options(selectinload(Order.confirmation_logs))
            .order_by(Order.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        records = []
        for order in session.scalars(stmt).all():
            log = order.confirmation_logs[0] if order.confirmation_logs else None
            records.append(
                {
                    "order_id": order.id,
                    "dining_date": order.dining_date.isoformat(),
                    "meal_type": order.meal_type,
                    "meal_type_name": MEAL_TYPE_NAMES.get(order.meal_type, order.meal_type),
                    "status": order.status,
                    "dining_status": order.dining_status,
                    "status_text": ORDER_STATUS_TEXT.get(order.status, "未知状态"),
                    "confirmation_text": DINING_STATUS_TEXT.get(order.dining_status, "未确认"),
                    "actual_dining_time": to_iso(order.actual_dining_time),
                    "register_time": to_iso(order.created_at),
                    "remark": order.remark,
                    "confirmation": serialize_confirmation_log(log) if log else None,
                }
            )

    return paginated_response(records, total, page, limit)


def _empty_bucket() -> dict[str, int]:
    return {
        "total_orders": 0,
        "pending_confirmation": 0,
        "confirmed_dining": 0,
        "cancelled_orders": 0,
        "total_members": 0,
    }


def _count(bucket: dict[str, int], order: Order) -> None:
    if order.status == OrderStatus.CANCELLED.value:
        bucket["cancelled_orders"] += 1
        return
    bucket["total_orders"] += 1
    bucket["total_members"] += order.member_count
    if order.dining_status == DiningStatus.DINED.value:
        bucket["confirmed_dining"] += 1
    elif order.dining_status == DiningStatus.ORDERED.value:
        bucket["pending_confirmation"] += 1


def get_department_confirmation_stats(
    dining_date: str | None = None,
    department_id: str | None = None,
    *,
    actor_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Confirmation progress for one day, overall, per meal and per department.

    When ``actor_id`` names a dept_admin the figures are limited to that
    admin's department. Cancelled orders are only counted in
    ``cancelled_orders``.
    """
    if actor_id is not None:
        actor = directory_service.get_user(actor_id)
        if actor is None or not actor.is_active or actor.role not in STATS_ROLES:
            raise AuthorizationError("权限不足，无法查看就餐统计", code="INSUFFICIENT_PERMISSIONS")
        if actor.role == Roles.DEPT_ADMIN.value:
            if department_id and department_id != actor.department_id:
                raise AuthorizationError(
                    "部门管理员只能查看本部门的统计",
                    code="INSUFFICIENT_PERMISSIONS",
                    details={"department_id": department_id},
                )
            department_id = actor.department_id

    query_date = parse_dining_date(dining_date) if dining_date else local_today(now)

    stmt = select(Order).options(selectinload(Order.members)).where(
        Order.dining_date == query_date
    )
    if department_id:
        stmt = stmt.where(Order.department_id == department_id)

    total = _empty_bucket()
    by_meal: dict[str, dict[str, int]] = {meal: _empty_bucket() for meal in MealType.all_values()}
    by_department: dict[str, dict[str, Any]] = defaultdict(_empty_bucket)

    with get_session() as session:
        for order in session.scalars(stmt).all():
            _count(total, order)
            _count(by_meal[order.meal_type], order)
            bucket = by_department[order.department_id]
            bucket["department_name"] = order.department_name
            _count(bucket, order)

    return {
        "query_date": query_date.isoformat(),
        "department_id": department_id,
        "total_stats": total,
        "meal_stats": [
            {"meal_type": meal, "meal_type_name": MEAL_TYPE_NAMES[meal], **stats}
            for meal, stats in by_meal.items()
        ],
        "department_stats": [
            {"department_id": dept_id, **stats}
            for dept_id, stats in sorted(
                by_department.items(), key=lambda item: item[1].get("department_name") or ""
            )
        ],
    }
