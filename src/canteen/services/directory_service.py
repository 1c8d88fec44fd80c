"""
Read-only directory lookups: users, their department, role and status.

Lookups run in their own short transaction ahead of any ledger write and fail
closed: a database error is logged and reported as "not found", never as
"assume valid".
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import case, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from canteen.constants import ADMIN_ROLES, ROLE_DISPLAY_NAMES, Roles, UserStatus
from canteen.db import get_session
from canteen.logging_config import get_logger
from canteen.models import Department, User

logger = get_logger(__name__)


@dataclass(frozen=True)
class DirectoryUser:
    id: str
    name: str
    department_id: str | None
    department_name: str | None
    role: str
    status: str
    phone_number: str | None = None
    email: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def is_admin(self) -> bool:
        return Roles.is_admin(self.role)


@dataclass(frozen=True)
class DepartmentInfo:
    id: str
    name: str


def _snapshot(user: User) -> DirectoryUser:
    return DirectoryUser(
        id=user.id,
        name=user.name,
        department_id=user.department_id,
        department_name=user.department.name if user.department else None,
        role=user.role,
        status=user.status,
        phone_number=user.phone_number,
        email=user.email,
    )


def get_user(user_id: str | None) -> DirectoryUser | None:
    if not user_id:
        return None
    try:
        with get_session() as session:
            user = session.scalar(
                select(User).options(joinedload(User.department)).where(User.id == user_id)
            )
            return _snapshot(user) if user else None
    except SQLAlchemyError as exc:
        logger.error("Directory lookup failed for user %s: %s", user_id, exc)
        return None


def get_users(user_ids: Iterable[str]) -> dict[str, DirectoryUser]:
    """Resolve many users at once; missing ids are simply absent from the result."""
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return {}
    try:
        with get_session() as session:
            users = session.scalars(
                select(User).options(joinedload(User.department)).where(User.id.in_(ids))
            ).all()
            return {user.id: _snapshot(user) for user in users}
    except SQLAlchemyError as exc:
        logger.error("Directory lookup failed for %d users: %s", len(ids), exc)
        return {}


def get_department(department_id: str | None) -> DepartmentInfo | None:
    if not department_id:
        return None
    try:
        with get_session() as session:
            department = session.get(Department, department_id)
            return DepartmentInfo(id=department.id, name=department.name) if department else None
    except SQLAlchemyError as exc:
        logger.error("Directory lookup failed for department %s: %s", department_id, exc)
        return None


def get_department_members(
    department_id: str,
    include_inactive: bool = False,
    keyword: str | None = None,
) -> list[DirectoryUser]:
    """Department roster ordered with administrators first, then by name."""
    stmt = (
        select(User)
        .options(joinedload(User.department))
        .where(User.department_id == department_id)
    )
    if not include_inactive:
        stmt = stmt.where(User.status == UserStatus.ACTIVE.value)
    if keyword:
        pattern = f"%{keyword}%"
        stmt = stmt.where(or_(User.name.ilike(pattern), User.phone_number.ilike(pattern)))
    admins_first = case((User.role.in_(sorted(ADMIN_ROLES)), 0), else_=1)
    stmt = stmt.order_by(admins_first, User.name)

    try:
        with get_session() as session:
            return [_snapshot(user) for user in session.scalars(stmt).all()]
    except SQLAlchemyError as exc:
        logger.error("Directory roster lookup failed for department %s: %s", department_id, exc)
        return []


def count_active_members(department_id: str) -> int:
    return len(get_department_members(department_id))


def serialize_member(user: DirectoryUser) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "role": user.role,
        "role_display": ROLE_DISPLAY_NAMES.get(user.role, user.role),
        "status": user.status,
        "phone_number": user.phone_number,
        "email": user.email,
        "is_department_admin": user.role == Roles.DEPT_ADMIN.value,
    }
