"""
Dining state machine: the only writer of ``dining_status`` after creation.

``ordered --confirm--> dined`` and ``ordered --cancel--> cancelled``; both
targets are terminal. Transitions are applied with a guarded conditional
UPDATE (``WHERE dining_status = 'ordered'``) so that of two concurrent
transitions on the same order exactly one matches a row.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from canteen.constants import DINING_TRANSITIONS, DiningStatus, OrderStatus
from canteen.datetime_utils import utcnow
from canteen.logging_config import get_logger
from canteen.models import Order, OrderMember

logger = get_logger(__name__)


class DiningStateError(Exception):
    """Raised when a transition is not allowed from the order's current state."""

    def __init__(
        self,
        message: str,
        current_status: DiningStatus | None,
        target_status: DiningStatus | None,
    ):
        super().__init__(message)
        self.current_status = current_status
        self.target_status = target_status


class DiningEvent(Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"


@dataclass
class TransitionContext:
    order: Order
    event: DiningEvent
    actor_id: str
    at: datetime = field(default_factory=utcnow)
    remark: str | None = None


class DiningStateMachine:
    def __init__(self):
        self._transition_handlers: dict[
            tuple[DiningStatus, DiningEvent], Callable[[TransitionContext], dict[str, Any]]
        ] = {}
        self._register_handlers()

    def _register_handlers(self) -> None:
        self._transition_handlers[(DiningStatus.ORDERED, DiningEvent.CONFIRM)] = (
            self._handle_confirm
        )
        self._transition_handlers[(DiningStatus.ORDERED, DiningEvent.CANCEL)] = self._handle_cancel

    def can_transition(self, current_status: DiningStatus, event: DiningEvent) -> bool:
        target = self.get_target_status(event)
        return (current_status, target) in DINING_TRANSITIONS

    def validate_transition(self, context: TransitionContext) -> None:
        current_status = self.get_status(context.order)
        target_status = self.get_target_status(context.event)
        if not self.can_transition(current_status, context.event):
            raise DiningStateError(
                f"Invalid transition: {current_status.value} -> {target_status.value}",
                current_status,
                target_status,
            )

    def apply_transition(self, session: Session, context: TransitionContext) -> None:
        """
        Apply the transition inside the caller's transaction.

        Raises DiningStateError when the order is not in a state the event
        applies to, including when a concurrent transaction moved it first.
        """
        self.validate_transition(context)

        current_status = self.get_status(context.order)
        target_status = self.get_target_status(context.event)
        handler = self._transition_handlers[(current_status, context.event)]

        values = {"dining_status": target_status.value, "updated_at": context.at}
        values.update(handler(context))

        result = session.execute(
            update(Order)
            .where(
                Order.id == context.order.id,
                Order.dining_status == current_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.refresh(context.order)
            raise DiningStateError(
                f"Order {context.order.id} changed concurrently "
                f"(now {context.order.dining_status})",
                self.get_status(context.order),
                target_status,
            )

        if context.event is DiningEvent.CANCEL:
            self._release_booking_slots(session, context.order)

        session.refresh(context.order)
        logger.debug(
            "Order %s: %s -> %s by %s",
            context.order.id,
            current_status.value,
            target_status.value,
            context.actor_id,
        )

    def get_status(self, order: Order) -> DiningStatus:
        return DiningStatus(order.dining_status)

    def get_target_status(self, event: DiningEvent) -> DiningStatus:
        mapping = {
            DiningEvent.CONFIRM: DiningStatus.DINED,
            DiningEvent.CANCEL: DiningStatus.CANCELLED,
        }
        return mapping[event]

    def _handle_confirm(self, context: TransitionContext) -> dict[str, Any]:
        return {"actual_dining_time": context.at}

    def _handle_cancel(self, context: TransitionContext) -> dict[str, Any]:
        values: dict[str, Any] = {"status": OrderStatus.CANCELLED.value}
        if context.remark:
            existing = context.order.remark
            values["remark"] = f"{existing}\n{context.remark}" if existing else context.remark
        return values

    def _release_booking_slots(self, session: Session, order: Order) -> None:
        session.execute(
            update(OrderMember)
            .where(OrderMember.order_id == order.id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )


dining_state_machine = DiningStateMachine()
