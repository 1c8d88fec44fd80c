"""QR scan check-in: turns a valid scan into a ``qr`` channel confirmation."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import or_, select

from canteen.constants import MEAL_TYPE_NAMES, ConfirmationChannel, OrderStatus
from canteen.datetime_utils import local_now, local_today
from canteen.db import get_session
from canteen.errors import BusinessError, NotFoundError
from canteen.logging_config import get_logger
from canteen.models import Order, OrderMember, QRCode
from canteen.services.confirmation_service import confirm
from canteen.services.meal_window_service import MealWindowService

logger = get_logger(__name__)

ACTIVE = "active"


def _find_active_qr_code(code: str) -> dict[str, Any]:
    with get_session() as session:
        qr_code = session.scalar(
            select(QRCode).where(QRCode.code == code, QRCode.status == ACTIVE)
        )
        if qr_code is None:
            raise NotFoundError(
                "二维码无效或已停用", code="QR_CODE_INVALID", details={"code": code}
            )
        return {"id": qr_code.id, "name": qr_code.name, "location": qr_code.location}


def _find_user_order_id(user_id: str, dining_date, meal_type: str) -> str | None:
    """The user's live order for the meal, as registrant or member."""
    with get_session() as session:
        return session.scalar(
            select(Order.id)
            .where(
                Order.dining_date == dining_date,
                Order.meal_type == meal_type,
                Order.status != OrderStatus.CANCELLED.value,
                or_(
                    Order.registrant_id == user_id,
                    Order.members.any(OrderMember.user_id == user_id),
                ),
            )
            .order_by(Order.created_at)
            .limit(1)
        )


def process_qr_scan(user_id: str, code: str, *, now: datetime | None = None) -> dict[str, Any]:
    """
    Check a user in for the meal currently being served.

    The meal is derived from the canteen clock, never from the client.
    """
    qr_info = _find_active_qr_code(code)

    meal_type = MealWindowService.meal_type_at(now)
    if meal_type is None:
        raise BusinessError("当前时间不在就餐时间内", code="OUTSIDE_DINING_TIME")

    dining_date = local_today(now)
    order_id = _find_user_order_id(user_id, dining_date, meal_type)
    if order_id is None:
        raise NotFoundError(
            "您尚未报餐，无法进行就餐登记",
            code="NOT_REGISTERED",
            details={"dining_date": dining_date.isoformat(), "meal_type": meal_type},
        )

    result = confirm(
        order_id,
        user_id,
        ConfirmationChannel.QR,
        remark=f"扫码确认就餐 - 二维码: {code}",
        now=now,
    )
    logger.info("QR check-in of %s at %s for order %s", user_id, qr_info["id"], order_id)
    return {
        **result,
        "meal_type": meal_type,
        "meal_type_name": MEAL_TYPE_NAMES[meal_type],
        "dining_date": dining_date.isoformat(),
        "scan_time": local_now(now).strftime("%Y-%m-%d %H:%M:%S"),
        "qr_code": {"name": qr_info["name"], "location": qr_info["location"]},
    }
