"""
Validation rules shared by the order ledger and the confirmation engine.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from canteen.config import get_active_config
from canteen.constants import (
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MEAL_TYPE_NAMES,
    MealType,
)
from canteen.datetime_utils import local_today
from canteen.errors import AuthorizationError, BusinessError, ValidationError
from canteen.services.meal_window_service import MealWindowService


def parse_dining_date(value: date | str | None, field: str = "date") -> date:
    """Accept a ``date`` or a ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field} 为必填项", code="INVALID_DATE", details={"field": field})
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise ValidationError(
            f"日期格式不正确: {value} (YYYY-MM-DD)",
            code="INVALID_DATE",
            details={"field": field, "value": value},
        ) from None


def parse_meal_type(value: str | MealType | None) -> str:
    if isinstance(value, MealType):
        return value.value
    if value not in MealType.all_values():
        allowed = ", ".join(MealType.all_values())
        raise ValidationError(
            f"餐次类型必须是 {allowed} 之一",
            code="INVALID_MEAL_TYPE",
            details={"value": value, "allowed": MealType.all_values()},
        )
    return value


def find_duplicate_ids(ids: Iterable[str]) -> list[str]:
    """Ids appearing more than once, in first-repeat order."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for user_id in ids:
        if user_id in seen and user_id not in duplicates:
            duplicates.append(user_id)
        seen.add(user_id)
    return duplicates


def validate_member_ids(member_ids: list[str]) -> None:
    if not member_ids:
        raise ValidationError("报餐成员不能为空", code="EMPTY_MEMBERS")
    duplicates = find_duplicate_ids(member_ids)
    if duplicates:
        raise ValidationError(
            f"报餐名单中存在重复用户: {', '.join(duplicates)}",
            code="DUPLICATE_MEMBERS",
            details={"duplicate_ids": duplicates},
        )


def find_double_booked(
    candidate_ids: Iterable[str], booked_member_sets: Iterable[Iterable[str]]
) -> list[str]:
    """
    Return the candidates already present in any of the given bookings.

    ``booked_member_sets`` are the member id collections of the non-cancelled
    orders for the same date and meal. The result keeps candidate order.
    """
    booked: set[str] = set()
    for members in booked_member_sets:
        booked.update(members)
    return [user_id for user_id in candidate_ids if user_id in booked]


def require_admin(user, operation: str = "此操作") -> None:
    """Booking and proxy confirmation need an active dept_admin or sys_admin."""
    if user is None or not user.is_admin or not user.is_active:
        raise AuthorizationError(
            f"权限不足，需要部门管理员及以上权限才能执行{operation}",
            code="INSUFFICIENT_PERMISSIONS",
        )


def check_dining_time(dining_date: date, meal_type: str, now: datetime | None = None) -> None:
    """
    Confirmation time guard.

    Orders dated today may only be confirmed inside their meal window. Past
    dates are unrestricted; future dates are unrestricted unless
    ``allow_future_confirmation`` is switched off.
    """
    today = local_today(now)
    if dining_date == today:
        if not MealWindowService.is_in_dining_time(meal_type, now):
            window = MealWindowService.get_window(meal_type)
            raise BusinessError(
                f"当前时间不在{window.name}就餐时间内（{window.label}）",
                code="OUTSIDE_DINING_TIME",
                details={"meal_type": meal_type, "window": window.label},
            )
    elif dining_date > today and not get_active_config().allow_future_confirmation:
        raise BusinessError(
            f"不能提前确认 {dining_date.isoformat()} 的{MEAL_TYPE_NAMES[meal_type]}",
            code="FUTURE_CONFIRMATION",
            details={"dining_date": dining_date.isoformat()},
        )


def validate_pagination(page: int | None, limit: int | None) -> tuple[int, int]:
    """
    Validate and normalize pagination parameters.

    Returns: (page, limit) tuple with validated values.
    """
    if page is None or page < 1:
        page = 1

    if limit is None or limit < 1:
        limit = DEFAULT_PAGE_SIZE
    elif limit > MAX_PAGE_SIZE:
        limit = MAX_PAGE_SIZE

    return page, limit
