"""Read-only access to published menus and their priced dishes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from canteen.db import get_session
from canteen.logging_config import get_logger
from canteen.models import Menu

logger = get_logger(__name__)

PUBLISHED = "published"


@dataclass(frozen=True)
class PricedDish:
    id: str
    price: Decimal


@dataclass(frozen=True)
class PublishedMenu:
    id: str
    name: str | None
    dishes: list[PricedDish] = field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        return sum((dish.price for dish in self.dishes), Decimal("0.00"))


def get_published_menu(dining_date: date, meal_type: str) -> PublishedMenu | None:
    """
    Return the published menu for a date and meal, or None.

    Ordering ahead of publication is allowed, so a missing menu (or a failed
    lookup) is not an error for callers.
    """
    stmt = (
        select(Menu)
        .options(selectinload(Menu.dishes))
        .where(
            Menu.publish_date == dining_date,
            Menu.meal_type == meal_type,
            Menu.publish_status == PUBLISHED,
        )
    )
    try:
        with get_session() as session:
            menu = session.scalars(stmt).first()
            if menu is None:
                return None
            return PublishedMenu(
                id=menu.id,
                name=menu.name,
                dishes=[
                    PricedDish(id=dish.dish_id, price=Decimal(dish.price or 0))
                    for dish in menu.dishes
                ],
            )
    except SQLAlchemyError as exc:
        logger.error("Menu lookup failed for %s/%s: %s", dining_date, meal_type, exc)
        return None
