"""
Order ledger: department batch bookings and their cancellation.

Directory and menu lookups run before the write transaction. The
duplicate-booking read and the insert share one transaction, and the
``uq_order_member_active_booking`` index makes the store refuse a second
live booking of the same user for the same date and meal even when two
requests pass the read concurrently.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from canteen.config import get_active_config
from canteen.constants import MEAL_TYPE_NAMES, DiningStatus, MealType, OrderStatus, Roles
from canteen.datetime_utils import canteen_zone, local_now, local_today, resolve_now
from canteen.db import get_session
from canteen.errors import (
    AuthorizationError,
    BusinessError,
    ConflictError,
    DiningError,
    NotFoundError,
    ValidationError,
)
from canteen.logging_config import get_logger
from canteen.models import Order, OrderMember
from canteen.serializers import paginated_response, serialize_order
from canteen.services import directory_service
from canteen.services.directory_service import DepartmentInfo, DirectoryUser, serialize_member
from canteen.services.dining_state_machine import (
    DiningEvent,
    DiningStateError,
    TransitionContext,
    dining_state_machine,
)
from canteen.services.menu_service import get_published_menu
from canteen.validation import (
    find_double_booked,
    parse_dining_date,
    parse_meal_type,
    require_admin,
    validate_member_ids,
    validate_pagination,
)

logger = get_logger(__name__)


def _resolve_department(actor: DirectoryUser, department_id: str | None) -> DepartmentInfo:
    """
    Department an admin operates on.

    A sys_admin may name any department; a dept_admin only their own.
    """
    target_id = department_id or actor.department_id
    if target_id != actor.department_id and actor.role != Roles.SYS_ADMIN.value:
        raise AuthorizationError(
            "部门管理员只能管理本部门的报餐",
            code="INSUFFICIENT_PERMISSIONS",
            details={"department_id": department_id},
        )
    department = directory_service.get_department(target_id)
    if department is None:
        raise NotFoundError(
            "部门不存在",
            code="DEPARTMENT_NOT_FOUND",
            details={"department_id": target_id},
        )
    return department


def _require_admin_actor(actor_id: str, operation: str) -> DirectoryUser:
    actor = directory_service.get_user(actor_id)
    require_admin(actor, operation)
    return actor


def _load_booked_member_sets(
    session: Session, dining_date: date, meal_type: str
) -> list[list[str]]:
    """Member ids of every non-cancelled order for the date and meal."""
    orders = session.scalars(
        select(Order)
        .options(selectinload(Order.members))
        .where(
            Order.dining_date == dining_date,
            Order.meal_type == meal_type,
            Order.status != OrderStatus.CANCELLED.value,
        )
    ).all()
    return [order.member_ids for order in orders]


def _members_holding_slot(
    session: Session, member_ids: list[str], dining_date: date, meal_type: str
) -> list[str]:
    """Requested ids that already hold a live booking for the date and meal."""
    held = set(
        session.scalars(
            select(OrderMember.user_id).where(
                OrderMember.user_id.in_(member_ids),
                OrderMember.dining_date == dining_date,
                OrderMember.meal_type == meal_type,
                OrderMember.is_active.is_(True),
            )
        )
    )
    return [uid for uid in member_ids if uid in held]


def _double_booking_error(
    conflicting_ids: list[str], users: dict[str, DirectoryUser], dining_date: date, meal_type: str
) -> ConflictError:
    names = [users[user_id].name if user_id in users else user_id for user_id in conflicting_ids]
    return ConflictError(
        f"以下成员已在 {dining_date.isoformat()} {MEAL_TYPE_NAMES[meal_type]}报餐: {', '.join(names)}",
        code="DOUBLE_BOOKING",
        details={
            "member_ids": conflicting_ids,
            "member_names": names,
            "dining_date": dining_date.isoformat(),
            "meal_type": meal_type,
        },
    )


def create_department_order(
    actor_id: str,
    dining_date: date | str,
    meal_type: str,
    member_ids: list[str],
    remark: str | None = None,
    department_id: str | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Book a meal for a list of department members.

    The request is all-or-nothing: if any member fails a check, nothing is
    written. Returns the serialized order.
    """
    dining_date = parse_dining_date(dining_date)
    meal_type = parse_meal_type(meal_type)

    actor = _require_admin_actor(actor_id, "部门报餐")
    department = _resolve_department(actor, department_id)

    member_ids = list(member_ids or [])
    validate_member_ids(member_ids)

    if get_active_config().reject_past_bookings and dining_date < local_today(now):
        raise BusinessError(
            f"不能为过去的日期报餐: {dining_date.isoformat()}",
            code="PAST_DINING_DATE",
            details={"dining_date": dining_date.isoformat()},
        )

    users = directory_service.get_users(member_ids)
    missing = [uid for uid in member_ids if uid not in users or not users[uid].is_active]
    if missing:
        raise NotFoundError(
            f"以下用户不存在或已停用: {', '.join(missing)}",
            code="USER_NOT_FOUND",
            details={"missing_ids": missing},
        )

    outsiders = [users[uid] for uid in member_ids if users[uid].department_id != department.id]
    if outsiders:
        raise BusinessError(
            f"以下成员不属于{department.name}: {', '.join(u.name for u in outsiders)}",
            code="MEMBER_NOT_IN_DEPARTMENT",
            details={
                "member_ids": [u.id for u in outsiders],
                "member_names": [u.name for u in outsiders],
                "department_id": department.id,
            },
        )

    menu = get_published_menu(dining_date, meal_type)
    total_amount = menu.total_price if menu else Decimal("0.00")
    stamp = resolve_now(now)

    with get_session() as session:
        conflicting = find_double_booked(
            member_ids, _load_booked_member_sets(session, dining_date, meal_type)
        )
        if conflicting:
            raise _double_booking_error(conflicting, users, dining_date, meal_type)

        order = Order(
            menu_id=menu.id if menu else None,
            department_id=department.id,
            department_name=department.name,
            registrant_id=actor.id,
            registrant_name=actor.name,
            dining_date=dining_date,
            meal_type=meal_type,
            status=OrderStatus.CONFIRMED.value,
            total_amount=total_amount,
            remark=remark,
            created_at=stamp,
            updated_at=stamp,
        )
        order.members = [
            OrderMember(
                user_id=uid,
                user_name=users[uid].name,
                position=position,
                dining_date=dining_date,
                meal_type=meal_type,
            )
            for position, uid in enumerate(member_ids)
        ]
        session.add(order)
        try:
            session.flush()
        except IntegrityError as exc:
            logger.warning(
                "Booking index rejected %s/%s for %s: %s",
                dining_date,
                meal_type,
                member_ids,
                exc.orig,
            )
            # A concurrent booking committed between the read and the insert.
            session.rollback()
            conflicting = (
                _members_holding_slot(session, member_ids, dining_date, meal_type) or member_ids
            )
            raise _double_booking_error(conflicting, users, dining_date, meal_type) from None

        result = serialize_order(order)

    logger.info(
        "Order %s created by %s for %s %s/%s (%d members, amount %s)",
        result["id"],
        actor.id,
        department.id,
        dining_date,
        meal_type,
        len(member_ids),
        total_amount,
    )
    return result


def create_batch_department_orders(
    actor_id: str,
    orders: list[dict[str, Any]],
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Create several bookings, each in its own transaction.

    A failing item is reported in ``errors`` and never rolls back the items
    already committed.
    """
    if not orders:
        raise ValidationError("报餐列表不能为空", code="VALIDATION_ERROR")

    created: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []
    for index, item in enumerate(orders):
        try:
            created.append(
                create_department_order(
                    actor_id,
                    item.get("date"),
                    item.get("meal_type"),
                    item.get("member_ids") or [],
                    remark=item.get("remark"),
                    department_id=item.get("department_id"),
                    now=now,
                )
            )
        except DiningError as exc:
            logger.warning(
                "Batch booking item %d (%s/%s) rejected: %s",
                index,
                item.get("date"),
                item.get("meal_type"),
                exc.code,
            )
            errors.append(
                {
                    "index": index,
                    "date": item.get("date"),
                    "meal_type": item.get("meal_type"),
                    **exc.to_dict(),
                }
            )

    summary = {
        "total_orders": len(orders),
        "success_count": len(created),
        "failed_count": len(errors),
        "orders": created,
        "errors": errors,
    }
    logger.info(
        "Batch booking by %s: %d/%d succeeded",
        actor_id,
        summary["success_count"],
        summary["total_orders"],
    )
    return summary


def create_quick_batch_orders(
    actor_id: str,
    member_ids: list[str],
    meals: Iterable[dict[str, Any]],
    remark: str | None = None,
    department_id: str | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Book the same member list for several (date, meal) combinations."""
    orders = [
        {
            "date": meal.get("date"),
            "meal_type": meal.get("meal_type"),
            "member_ids": list(member_ids or []),
            "remark": remark,
            "department_id": department_id,
        }
        for meal in meals
    ]
    return create_batch_department_orders(actor_id, orders, now=now)


def cancel_deadline(dining_date: date) -> datetime:
    """Cancellation closes at the configured hour of the day before the meal."""
    hour = get_active_config().cancel_deadline_hour
    return datetime.combine(dining_date - timedelta(days=1), time(hour=hour), tzinfo=canteen_zone())


def _can_manage_order(actor: DirectoryUser, order: Order) -> bool:
    if actor.id == order.registrant_id:
        return True
    if actor.role == Roles.SYS_ADMIN.value:
        return True
    return actor.role == Roles.DEPT_ADMIN.value and actor.department_id == order.department_id


def _access_denied() -> AuthorizationError:
    return AuthorizationError("订单不存在或无权操作", code="ORDER_ACCESS_DENIED")


def _order_not_found(order_id: str) -> NotFoundError:
    return NotFoundError("订单不存在", code="ORDER_NOT_FOUND", details={"order_id": order_id})


def cancel_order(
    order_id: str,
    actor_id: str,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Move an order to ``cancelled`` and release its members' booking slots."""
    actor = directory_service.get_user(actor_id)
    if actor is None or not actor.is_active:
        raise _access_denied()

    with get_session() as session:
        order = session.scalar(
            select(Order)
            .options(selectinload(Order.members))
            .where(Order.id == order_id)
            .with_for_update(of=Order)
        )
        if order is None:
            raise _order_not_found(order_id)
        if not _can_manage_order(actor, order):
            raise _access_denied()

        if order.dining_status == DiningStatus.DINED.value:
            raise BusinessError(
                "已就餐的订单不能取消",
                code="ORDER_ALREADY_DINED",
                details={"order_id": order.id},
            )
        if (
            order.status == OrderStatus.CANCELLED.value
            or order.dining_status == DiningStatus.CANCELLED.value
        ):
            raise ConflictError(
                "订单已取消",
                code="ORDER_ALREADY_CANCELLED",
                details={"order_id": order.id},
            )

        deadline = cancel_deadline(order.dining_date)
        if local_now(now) > deadline:
            raise BusinessError(
                f"已超过取消截止时间（{deadline:%Y-%m-%d %H:%M}）",
                code="CANCEL_DEADLINE_PASSED",
                details={"order_id": order.id, "deadline": deadline.isoformat()},
            )

        context = TransitionContext(
            order=order,
            event=DiningEvent.CANCEL,
            actor_id=actor.id,
            at=resolve_now(now),
            remark=f"取消原因: {reason}" if reason else None,
        )
        try:
            dining_state_machine.apply_transition(session, context)
        except DiningStateError as exc:
            raise ConflictError(
                "订单状态已变化，请刷新后重试",
                code="ORDER_ALREADY_CANCELLED"
                if exc.current_status is DiningStatus.CANCELLED
                else "CONFLICT",
                details={"order_id": order.id},
            ) from exc

        result = serialize_order(order)

    logger.info("Order %s cancelled by %s", order_id, actor.id)
    return result


def get_order(order_id: str, actor_id: str) -> dict[str, Any]:
    actor = directory_service.get_user(actor_id)
    if actor is None or not actor.is_active:
        raise _access_denied()

    with get_session() as session:
        order = session.scalar(
            select(Order).options(selectinload(Order.members)).where(Order.id == order_id)
        )
        if order is None:
            raise _order_not_found(order_id)
        if not (_can_manage_order(actor, order) or order.has_member(actor.id)):
            raise _access_denied()
        return serialize_order(order)


def _apply_date_filters(stmt, dining_date, start_date, end_date):
    if dining_date:
        stmt = stmt.where(Order.dining_date == parse_dining_date(dining_date))
    if start_date:
        stmt = stmt.where(Order.dining_date >= parse_dining_date(start_date, "start_date"))
    if end_date:
        stmt = stmt.where(Order.dining_date <= parse_dining_date(end_date, "end_date"))
    return stmt


def list_department_orders(
    actor_id: str,
    dining_date: str | None = None,
    meal_type: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    department_id: str | None = None,
    page: int | None = 1,
    limit: int | None = None,
) -> dict[str, Any]:
    """Paginated bookings of the admin's department, newest dining date first."""
    actor = _require_admin_actor(actor_id, "查看部门报餐")
    department = _resolve_department(actor, department_id)
    page, limit = validate_pagination(page, limit)

    base_stmt = select(Order).where(Order.department_id == department.id)
    base_stmt = _apply_date_filters(base_stmt, dining_date, start_date, end_date)
    if meal_type:
        base_stmt = base_stmt.where(Order.meal_type == parse_meal_type(meal_type))

    with get_session() as session:
        total = session.scalar(select(func.count()).select_from(base_stmt.subquery())) or 0
        stmt = (
            base_stmt.options(selectinload(Order.members))
            .order_by(Order.dining_date.desc(), Order.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        orders = [serialize_order(order) for order in session.scalars(stmt).all()]

    return paginated_response(orders, total, page, limit)


def get_department_order_stats(
    actor_id: str,
    start_date: str | None = None,
    end_date: str | None = None,
    department_id: str | None = None,
) -> dict[str, Any]:
    """Booking volume and participation for one department over a date range."""
    actor = _require_admin_actor(actor_id, "查看部门报餐统计")
    department = _resolve_department(actor, department_id)

    stmt = select(Order).where(
        Order.department_id == department.id,
        Order.status != OrderStatus.CANCELLED.value,
    )
    stmt = _apply_date_filters(stmt, None, start_date, end_date)

    with get_session() as session:
        orders = session.scalars(stmt.options(selectinload(Order.members))).all()
        meal_stats = {meal: 0 for meal in MealType.all_values()}
        unique_users: set[str] = set()
        total_members = 0
        for order in orders:
            meal_stats[order.meal_type] += order.member_count
            total_members += order.member_count
            unique_users.update(order.member_ids)
        order_days = len({order.dining_date for order in orders})
        total_orders = len(orders)

    department_size = directory_service.count_active_members(department.id)
    return {
        "department_id": department.id,
        "department_name": department.name,
        "department_size": department_size,
        "total_orders": total_orders,
        "total_members": total_members,
        "unique_users": len(unique_users),
        "order_days": order_days,
        "meal_type_stats": meal_stats,
        "participation_rate": (
            round(len(unique_users) / department_size * 100) if department_size else 0
        ),
    }


def get_department_members(
    actor_id: str,
    include_inactive: bool = False,
    keyword: str | None = None,
    department_id: str | None = None,
) -> dict[str, Any]:
    """Member picker for booking: the roster of the admin's department."""
    actor = _require_admin_actor(actor_id, "查看部门成员")
    department = _resolve_department(actor, department_id)
    members = directory_service.get_department_members(
        department.id, include_inactive=include_inactive, keyword=keyword
    )
    return {
        "department": {"id": department.id, "name": department.name},
        "members": [serialize_member(member) for member in members],
        "total": len(members),
    }
