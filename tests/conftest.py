"""
Shared fixtures: an in-memory SQLite ledger seeded with two departments.

Asia/Shanghai is UTC+8, so 04:00Z is 12:00 local (inside lunch) and 08:00Z
is 16:00 local (between lunch and dinner).
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import jwt
import pytest

from canteen.config import AppConfig, set_active_config
from canteen.db import dispose_engine, get_session, init_db, init_engine
from canteen.models import Base, Department, Menu, MenuDish, QRCode, User
from canteen.services.meal_window_service import MealWindowService

SECRET = "test-secret"

DINING_DAY = date(2025, 1, 10)
LUNCH_TIME = datetime(2025, 1, 10, 4, 0, tzinfo=timezone.utc)
AFTERNOON = datetime(2025, 1, 10, 8, 0, tzinfo=timezone.utc)
DAY_BEFORE = datetime(2025, 1, 8, 2, 0, tzinfo=timezone.utc)


def _user(user_id, name, department_id, role="user", status="active"):
    return User(id=user_id, name=name, department_id=department_id, role=role, status=status)


def seed(session):
    session.add_all(
        [
            Department(id="dept-rd", name="研发部"),
            Department(id="dept-mk", name="市场部"),
        ]
    )
    session.flush()
    session.add_all(
        [
            _user("admin-x", "管理员X", "dept-rd", role="dept_admin"),
            _user("admin-z", "管理员Z", "dept-rd", role="dept_admin"),
            _user("admin-y", "管理员Y", "dept-mk", role="dept_admin"),
            _user("root", "系统管理员", "dept-mk", role="sys_admin"),
            _user("verifier", "核验员", "dept-mk", role="verifier"),
            _user("u1", "张三", "dept-rd"),
            _user("u2", "李四", "dept-rd"),
            _user("u3", "王五", "dept-rd"),
            _user("u4", "赵六", "dept-mk"),
            _user("u-gone", "离职员工", "dept-rd", status="inactive"),
            _user("admin-off", "停用管理员", "dept-rd", role="dept_admin", status="inactive"),
        ]
    )
    lunch_menu = Menu(
        id="menu-lunch",
        name="周五午餐",
        publish_date=DINING_DAY,
        meal_type="lunch",
        publish_status="published",
    )
    lunch_menu.dishes = [
        MenuDish(dish_id="dish-rice", dish_name="米饭", price=Decimal("2.50")),
        MenuDish(dish_id="dish-fish", dish_name="红烧鱼", price=Decimal("18.00")),
    ]
    draft_menu = Menu(
        id="menu-dinner-draft",
        publish_date=DINING_DAY,
        meal_type="dinner",
        publish_status="draft",
    )
    draft_menu.dishes = [MenuDish(dish_id="dish-soup", price=Decimal("6.00"))]
    session.add_all(
        [
            lunch_menu,
            draft_menu,
            QRCode(id="qr-1", code="CANTEEN-001", name="一楼食堂", location="A栋1F"),
            QRCode(id="qr-2", code="OLD-QR", name="旧码", status="inactive"),
        ]
    )


@pytest.fixture
def config():
    cfg = AppConfig(
        app_name="canteen-test",
        db_host="",
        db_port=0,
        db_user="",
        db_password="",
        db_name="",
        db_sslmode="",
        secret_key=SECRET,
        log_level="WARNING",
        debug_mode=True,
        flask_debug=False,
        database_url="sqlite://",
    )
    set_active_config(cfg)
    MealWindowService.reset()
    yield cfg
    MealWindowService.reset()


@pytest.fixture
def db(config):
    dispose_engine()
    init_engine(config)
    init_db(Base.metadata)
    with get_session() as session:
        seed(session)
    yield
    dispose_engine()


@pytest.fixture
def book(db):
    """Create an order through the ledger; defaults to admin-x booking lunch."""
    from canteen.services.order_service import create_department_order

    def _book(members, actor="admin-x", dining_date=DINING_DAY, meal_type="lunch", **kwargs):
        return create_department_order(
            actor, dining_date.isoformat(), meal_type, members, now=DAY_BEFORE, **kwargs
        )

    return _book


@pytest.fixture
def app(db, config):
    from canteen_api.app import create_app

    flask_app = create_app(config)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


def make_token(user_id, expires_in=timedelta(hours=1)):
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "type": "access", "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, SECRET, algorithm="HS256")


@pytest.fixture
def auth_headers():
    def _headers(user_id):
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers
