"""
SQLAlchemy ORM models shared by the canteen services.

``departments``, ``users``, ``menus``, ``menu_dishes`` and ``qr_codes`` hold
collaborator data that the order core only reads. ``dining_orders``,
``order_members`` and ``dining_confirmation_logs`` are owned by the order
ledger and the confirmation engine.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .constants import DiningStatus, OrderStatus


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    users: Mapped[list[User]] = relationship("User", back_populates="department")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_user_department_status", "department_id", "status"),
        Index("ix_user_role_status", "role", "status"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    department_id: Mapped[str | None] = mapped_column(
        ForeignKey("departments.id"), nullable=True
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="user")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    department: Mapped[Department | None] = relationship("Department", back_populates="users")


class Menu(Base):
    __tablename__ = "menus"
    __table_args__ = (Index("ix_menu_publish", "publish_date", "meal_type", "publish_status"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    publish_date: Mapped[date] = mapped_column(Date, nullable=False)
    meal_type: Mapped[str] = mapped_column(String(16), nullable=False)
    publish_status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")

    dishes: Mapped[list[MenuDish]] = relationship(
        "MenuDish", back_populates="menu", cascade="all, delete-orphan"
    )


class MenuDish(Base):
    __tablename__ = "menu_dishes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    menu_id: Mapped[str] = mapped_column(
        ForeignKey("menus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dish_id: Mapped[str] = mapped_column(String(64), nullable=False)
    dish_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))

    menu: Mapped[Menu] = relationship("Menu", back_populates="dishes")


class QRCode(Base):
    __tablename__ = "qr_codes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    code: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")


class Order(Base):
    """One batch meal booking covering one or more members for one date and meal."""

    __tablename__ = "dining_orders"
    __table_args__ = (
        CheckConstraint(
            "meal_type IN ('breakfast', 'lunch', 'dinner')", name="ck_order_meal_type"
        ),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="ck_order_status"
        ),
        CheckConstraint(
            "dining_status IN ('ordered', 'dined', 'cancelled')", name="ck_order_dining_status"
        ),
        Index("ix_order_date_meal_status", "dining_date", "meal_type", "status"),
        Index("ix_order_department_date", "department_id", "dining_date"),
        Index("ix_order_registrant", "registrant_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    menu_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    department_id: Mapped[str] = mapped_column(String(64), nullable=False)
    department_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    registrant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    registrant_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    dining_date: Mapped[date] = mapped_column(Date, nullable=False)
    meal_type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=OrderStatus.CONFIRMED.value
    )
    dining_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=DiningStatus.ORDERED.value
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    actual_dining_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    members: Mapped[list[OrderMember]] = relationship(
        "OrderMember",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderMember.position",
    )
    confirmation_logs: Mapped[list[ConfirmationLog]] = relationship(
        "ConfirmationLog", back_populates="order", order_by="ConfirmationLog.confirmation_time"
    )

    @property
    def member_ids(self) -> list[str]:
        return [member.user_id for member in self.members]

    @property
    def member_names(self) -> list[str | None]:
        return [member.user_name for member in self.members]

    @property
    def member_count(self) -> int:
        return len(self.members)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.member_ids

    def member_name(self, user_id: str) -> str | None:
        for member in self.members:
            if member.user_id == user_id:
                return member.user_name
        return None


class OrderMember(Base):
    """
    One booked seat: a member of an order for the order's date and meal.

    The partial unique index over active rows makes the store itself refuse a
    second live booking of the same user for the same date and meal.
    Cancelling an order marks its rows inactive, which frees the slot while
    keeping the name snapshot for audit display.
    """

    __tablename__ = "order_members"
    __table_args__ = (
        UniqueConstraint("order_id", "user_id", name="uq_order_member_user"),
        Index(
            "uq_order_member_active_booking",
            "dining_date",
            "meal_type",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_order_member_user", "user_id", "dining_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("dining_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dining_date: Mapped[date] = mapped_column(Date, nullable=False)
    meal_type: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    order: Mapped[Order] = relationship("Order", back_populates="members")


class ConfirmationLog(Base):
    """Append-only audit row written once per successful confirmation."""

    __tablename__ = "dining_confirmation_logs"
    __table_args__ = (
        UniqueConstraint("order_id", name="uq_confirmation_log_order"),
        CheckConstraint(
            "confirmation_type IN ('manual', 'admin', 'qr')", name="ck_confirmation_type"
        ),
        Index("ix_confirmation_log_user", "user_id", "confirmation_time"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    order_id: Mapped[str] = mapped_column(ForeignKey("dining_orders.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    confirmation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    confirmation_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    confirmed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    order: Mapped[Order] = relationship("Order", back_populates="confirmation_logs")


@event.listens_for(ConfirmationLog, "before_update")
def _reject_log_update(mapper, connection, target):
    raise RuntimeError(f"Confirmation log {target.id} is append-only")


@event.listens_for(ConfirmationLog, "before_delete")
def _reject_log_delete(mapper, connection, target):
    raise RuntimeError(f"Confirmation log {target.id} is append-only")
