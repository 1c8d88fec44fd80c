"""
Application constants and enums.
"""

from enum import Enum


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"

    @classmethod
    def all_values(cls) -> list[str]:
        return [member.value for member in cls]


class OrderStatus(str, Enum):
    """Administrative lifecycle of the order record."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class DiningStatus(str, Enum):
    """Confirmation state of a booked meal."""

    ORDERED = "ordered"
    DINED = "dined"
    CANCELLED = "cancelled"


class ConfirmationChannel(str, Enum):
    MANUAL = "manual"
    ADMIN = "admin"
    QR = "qr"


class Roles(str, Enum):
    USER = "user"
    DEPT_ADMIN = "dept_admin"
    SYS_ADMIN = "sys_admin"
    VERIFIER = "verifier"

    @classmethod
    def is_admin(cls, role: str | None) -> bool:
        return role in {cls.DEPT_ADMIN.value, cls.SYS_ADMIN.value}

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


ADMIN_ROLES = {Roles.DEPT_ADMIN.value, Roles.SYS_ADMIN.value}
STATS_ROLES = ADMIN_ROLES | {Roles.VERIFIER.value}

TERMINAL_DINING_STATUSES = {
    DiningStatus.DINED,
    DiningStatus.CANCELLED,
}

# Allowed diningStatus transitions; dined and cancelled are terminal.
DINING_TRANSITIONS = {
    (DiningStatus.ORDERED, DiningStatus.DINED): {"action": "confirm"},
    (DiningStatus.ORDERED, DiningStatus.CANCELLED): {"action": "cancel"},
}

MEAL_TYPE_NAMES = {
    MealType.BREAKFAST.value: "早餐",
    MealType.LUNCH.value: "午餐",
    MealType.DINNER.value: "晚餐",
}

ORDER_STATUS_TEXT = {
    OrderStatus.PENDING.value: "待确认",
    OrderStatus.CONFIRMED.value: "已确认",
    OrderStatus.CANCELLED.value: "已取消",
}

DINING_STATUS_TEXT = {
    DiningStatus.ORDERED.value: "已报餐",
    DiningStatus.DINED.value: "已就餐",
    DiningStatus.CANCELLED.value: "已取消",
}

ROLE_DISPLAY_NAMES = {
    Roles.USER.value: "普通用户",
    Roles.DEPT_ADMIN.value: "部门管理员",
    Roles.SYS_ADMIN.value: "系统管理员",
    Roles.VERIFIER.value: "核验员",
}

DATE_FORMAT = "%Y-%m-%d"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
