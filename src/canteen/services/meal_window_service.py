"""Meal time windows: when each meal may be confirmed or scanned."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time

from canteen.config import get_active_config
from canteen.constants import MEAL_TYPE_NAMES, MealType
from canteen.datetime_utils import local_now
from canteen.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MealWindow:
    meal_type: str
    start: time
    end: time

    def contains(self, moment: time) -> bool:
        """Both ends inclusive, to the minute."""
        moment = moment.replace(second=0, microsecond=0)
        return self.start <= moment <= self.end

    @property
    def label(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"

    @property
    def name(self) -> str:
        return MEAL_TYPE_NAMES.get(self.meal_type, self.meal_type)


def parse_window(meal_type: str, raw: str) -> MealWindow:
    """Parse an ``HH:MM-HH:MM`` window; raises ValueError on bad input."""
    try:
        start_raw, end_raw = (part.strip() for part in raw.split("-", 1))
        start = datetime.strptime(start_raw, "%H:%M").time()
        end = datetime.strptime(end_raw, "%H:%M").time()
    except ValueError as exc:
        raise ValueError(f"Invalid meal window for {meal_type}: {raw!r}") from exc
    if start >= end:
        raise ValueError(f"Meal window for {meal_type} must start before it ends: {raw!r}")
    return MealWindow(meal_type=meal_type, start=start, end=end)


class MealWindowService:
    """Process-wide meal window table built from the active config."""

    _table: dict[str, MealWindow] | None = None

    @classmethod
    def get_table(cls) -> dict[str, MealWindow]:
        if cls._table is None:
            configured = get_active_config().meal_windows
            cls._table = {
                meal: parse_window(meal, configured[meal]) for meal in MealType.all_values()
            }
            logger.info(
                "Meal windows loaded: %s",
                {meal: window.label for meal, window in cls._table.items()},
            )
        return cls._table

    @classmethod
    def reset(cls) -> None:
        cls._table = None

    @classmethod
    def get_window(cls, meal_type: str) -> MealWindow:
        return cls.get_table()[meal_type]

    @classmethod
    def is_in_dining_time(cls, meal_type: str, now: datetime | None = None) -> bool:
        window = cls.get_table().get(meal_type)
        if window is None:
            return False
        return window.contains(local_now(now).time())

    @classmethod
    def meal_type_at(cls, now: datetime | None = None) -> str | None:
        """Return the meal whose window contains ``now``, if any."""
        moment = local_now(now).time()
        for meal_type, window in cls.get_table().items():
            if window.contains(moment):
                return meal_type
        return None
