"""
Confirmation engine: the ``ordered -> dined`` transition.

Every channel (self-service, administrator proxy, QR scan) goes through
``confirm``; the channel only selects the authorization predicate.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from canteen.constants import ConfirmationChannel, DiningStatus, OrderStatus
from canteen.datetime_utils import resolve_now
from canteen.db import get_session
from canteen.errors import (
    AuthorizationError,
    BusinessError,
    ConflictError,
    DiningError,
    NotFoundError,
    ValidationError,
)
from canteen.logging_config import LoggerAdapter, get_logger
from canteen.models import ConfirmationLog, Order
from canteen.serializers import serialize_confirmation
from canteen.services import directory_service
from canteen.services.directory_service import DirectoryUser
from canteen.services.dining_state_machine import (
    DiningEvent,
    DiningStateError,
    TransitionContext,
    dining_state_machine,
)
from canteen.validation import check_dining_time, require_admin

logger = get_logger(__name__)

DEFAULT_REMARKS = {
    ConfirmationChannel.MANUAL: "用户手动确认就餐",
    ConfirmationChannel.ADMIN: "管理员代确认就餐",
    ConfirmationChannel.QR: "扫码确认就餐",
}


def _access_denied() -> AuthorizationError:
    return AuthorizationError("订单不存在或无权操作", code="ORDER_ACCESS_DENIED")


def _authorize(channel: ConfirmationChannel, actor: DirectoryUser | None, order: Order) -> None:
    if channel is ConfirmationChannel.ADMIN:
        require_admin(actor, "代确认就餐")
        return
    if actor is None or not actor.is_active:
        raise _access_denied()
    if actor.id != order.registrant_id and not order.has_member(actor.id):
        raise _access_denied()


def _cancelled_error(order: Order) -> BusinessError:
    return BusinessError(
        "订单已取消，无法确认就餐", code="ORDER_CANCELLED", details={"order_id": order.id}
    )


def _already_confirmed_error(order: Order) -> ConflictError:
    return ConflictError(
        "该订单已确认就餐", code="ORDER_ALREADY_CONFIRMED", details={"order_id": order.id}
    )


def _guard_state(order: Order) -> None:
    if (
        order.status == OrderStatus.CANCELLED.value
        or order.dining_status == DiningStatus.CANCELLED.value
    ):
        raise _cancelled_error(order)
    if order.dining_status == DiningStatus.DINED.value:
        raise _already_confirmed_error(order)


def _resolve_subject(
    channel: ConfirmationChannel,
    actor: DirectoryUser,
    order: Order,
    member_id: str | None,
) -> tuple[str, str | None]:
    """Whose meal is being confirmed: (user_id, user_name)."""
    if channel is not ConfirmationChannel.ADMIN:
        return actor.id, actor.name
    if member_id is None or member_id == order.registrant_id:
        return order.registrant_id, order.registrant_name
    if not order.has_member(member_id):
        raise ValidationError(
            f"用户 {member_id} 不在该订单的报餐名单中",
            code="MEMBER_NOT_IN_ORDER",
            details={"order_id": order.id, "member_id": member_id},
        )
    return member_id, order.member_name(member_id)


def confirm(
    order_id: str,
    actor_id: str,
    channel: ConfirmationChannel | str,
    member_id: str | None = None,
    remark: str | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Confirm that the meal of an order was consumed.

    Checks run in order: order exists, channel authorization, state guard,
    time window. The transition and its confirmation log are written in the
    same transaction; of two concurrent confirmations exactly one succeeds
    and the other gets ``ORDER_ALREADY_CONFIRMED``.
    """
    channel = ConfirmationChannel(channel)
    log = LoggerAdapter(logger, {"order_id": order_id, "channel": channel.value})

    actor = directory_service.get_user(actor_id)

    stamp = resolve_now(now)
    with get_session() as session:
        order = session.scalar(
            select(Order)
            .options(selectinload(Order.members))
            .where(Order.id == order_id)
            .with_for_update(of=Order)
        )
        if order is None:
            raise NotFoundError(
                "订单不存在", code="ORDER_NOT_FOUND", details={"order_id": order_id}
            )
        try:
            _authorize(channel, actor, order)
        except AuthorizationError:
            log.warning("Confirmation denied for %s", actor_id)
            raise

        _guard_state(order)
        subject_id, subject_name = _resolve_subject(channel, actor, order, member_id)
        check_dining_time(order.dining_date, order.meal_type, now)

        try:
            dining_state_machine.apply_transition(
                session,
                TransitionContext(
                    order=order, event=DiningEvent.CONFIRM, actor_id=actor.id, at=stamp
                ),
            )
        except DiningStateError as exc:
            if exc.current_status is DiningStatus.CANCELLED:
                raise _cancelled_error(order) from exc
            raise _already_confirmed_error(order) from exc

        confirmation = ConfirmationLog(
            order_id=order.id,
            user_id=subject_id,
            user_name=subject_name,
            confirmation_type=channel.value,
            confirmation_time=stamp,
            remark=remark or DEFAULT_REMARKS[channel],
            confirmed_by=actor.id,
        )
        session.add(confirmation)
        try:
            session.flush()
        except IntegrityError:
            raise _already_confirmed_error(order) from None

        result = serialize_confirmation(confirmation, order)

    log.info("Order confirmed by %s for %s", actor.id, subject_id)
    return result


def confirm_manually(
    order_id: str, actor_id: str, remark: str | None = None, *, now: datetime | None = None
) -> dict[str, Any]:
    return confirm(order_id, actor_id, ConfirmationChannel.MANUAL, remark=remark, now=now)


def confirm_by_admin(
    order_id: str,
    actor_id: str,
    member_id: str | None = None,
    remark: str | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    return confirm(
        order_id, actor_id, ConfirmationChannel.ADMIN, member_id=member_id, remark=remark, now=now
    )


def batch_confirm(
    actor_id: str,
    order_ids: list[str],
    remark: str | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Admin-confirm several orders, each in its own transaction.

    Returns ``{success_count, total_count, errors}``; one failing order does
    not affect the others.
    """
    if not order_ids:
        raise ValidationError("订单ID列表不能为空", code="VALIDATION_ERROR")
    require_admin(directory_service.get_user(actor_id), "批量确认就餐")

    success_count = 0
    errors: list[dict[str, Any]] = []
    for order_id in order_ids:
        try:
            confirm(order_id, actor_id, ConfirmationChannel.ADMIN, remark=remark, now=now)
            success_count += 1
        except DiningError as exc:
            logger.warning("Batch confirmation of %s rejected: %s", order_id, exc.code)
            errors.append({"order_id": order_id, **exc.to_dict()})

    logger.info(
        "Batch confirmation by %s: %d/%d succeeded", actor_id, success_count, len(order_ids)
    )
    return {"success_count": success_count, "total_count": len(order_ids), "errors": errors}
