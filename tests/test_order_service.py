"""
Tests for the order ledger: department bookings, batches and cancellation.
"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest
from conftest import DAY_BEFORE, LUNCH_TIME

from canteen.config import set_active_config
from canteen.errors import (
    AuthorizationError,
    BusinessError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from canteen.services import order_service
from canteen.services.confirmation_service import confirm_manually
from canteen.services.order_service import (
    cancel_order,
    create_batch_department_orders,
    create_department_order,
    create_quick_batch_orders,
    get_department_members,
    get_department_order_stats,
    get_order,
    list_department_orders,
)

DEADLINE = datetime(2025, 1, 9, 14, 0, tzinfo=timezone.utc)  # 22:00 local, day before


def _item(**overrides):
    item = {"date": "2025-01-10", "meal_type": "lunch", "member_ids": ["u1"]}
    item.update(overrides)
    return item


class TestCreateDepartmentOrder:
    def test_books_members_in_order(self, book):
        order = book(["u1", "u2", "u3"], remark="项目组")

        assert order["registrant_id"] == "admin-x"
        assert order["registrant_name"] == "管理员X"
        assert order["department_id"] == "dept-rd"
        assert order["department_name"] == "研发部"
        assert order["member_ids"] == ["u1", "u2", "u3"]
        assert order["member_names"] == ["张三", "李四", "王五"]
        assert order["member_count"] == 3
        assert order["dining_date"] == "2025-01-10"
        assert order["meal_type"] == "lunch"
        assert order["status"] == "confirmed"
        assert order["dining_status"] == "ordered"
        assert order["actual_dining_time"] is None
        assert order["remark"] == "项目组"
        assert order["created_at"] == "2025-01-08T02:00:00Z"

    def test_total_amount_from_published_menu(self, book):
        order = book(["u1"])
        assert order["menu_id"] == "menu-lunch"
        assert order["total_amount"] == 20.5

    def test_unpublished_menu_is_not_an_error(self, book):
        order = book(["u1"], meal_type="dinner")
        assert order["menu_id"] is None
        assert order["total_amount"] == 0.0

    def test_second_admin_cannot_double_book(self, book):
        book(["u1", "u2", "u3"])

        with pytest.raises(ConflictError, match="李四, 王五") as exc_info:
            book(["u2", "u3"], actor="admin-z")

        assert exc_info.value.code == "DOUBLE_BOOKING"
        assert exc_info.value.details["member_ids"] == ["u2", "u3"]

    def test_same_members_for_another_meal(self, book):
        book(["u1", "u2"])
        order = book(["u1", "u2"], meal_type="dinner")
        assert order["member_count"] == 2

    def test_store_rejects_double_booking_missed_by_the_read(self, book, monkeypatch):
        book(["u1"])
        monkeypatch.setattr(order_service, "find_double_booked", lambda *args: [])

        with pytest.raises(ConflictError) as exc_info:
            book(["u2", "u1"], actor="admin-z")

        assert exc_info.value.code == "DOUBLE_BOOKING"
        assert exc_info.value.details["member_ids"] == ["u1"]
        assert exc_info.value.details["member_names"] == ["张三"]

    def test_empty_and_duplicate_members(self, book):
        with pytest.raises(ValidationError) as exc_info:
            book([])
        assert exc_info.value.code == "EMPTY_MEMBERS"

        with pytest.raises(ValidationError) as exc_info:
            book(["u1", "u1"])
        assert exc_info.value.code == "DUPLICATE_MEMBERS"

    def test_unknown_and_inactive_users(self, book):
        with pytest.raises(NotFoundError) as exc_info:
            book(["u1", "ghost", "u-gone"])
        assert exc_info.value.code == "USER_NOT_FOUND"
        assert exc_info.value.details["missing_ids"] == ["ghost", "u-gone"]

    def test_member_from_another_department(self, book):
        with pytest.raises(BusinessError, match="赵六") as exc_info:
            book(["u1", "u4"])
        assert exc_info.value.code == "MEMBER_NOT_IN_DEPARTMENT"
        assert exc_info.value.details["member_ids"] == ["u4"]

    @pytest.mark.parametrize("actor", ["u1", "verifier", "admin-off", "ghost"])
    def test_requires_active_admin(self, book, actor):
        with pytest.raises(AuthorizationError) as exc_info:
            book(["u1"], actor=actor)
        assert exc_info.value.code == "INSUFFICIENT_PERMISSIONS"

    def test_sys_admin_may_book_for_any_department(self, book):
        order = book(["u1"], actor="root", department_id="dept-rd")
        assert order["department_id"] == "dept-rd"
        assert order["registrant_id"] == "root"

    def test_dept_admin_limited_to_own_department(self, book):
        with pytest.raises(AuthorizationError) as exc_info:
            book(["u1"], actor="admin-y", department_id="dept-rd")
        assert exc_info.value.code == "INSUFFICIENT_PERMISSIONS"

    def test_unknown_department(self, book):
        with pytest.raises(NotFoundError) as exc_info:
            book(["u1"], actor="root", department_id="dept-none")
        assert exc_info.value.code == "DEPARTMENT_NOT_FOUND"

    def test_invalid_date_and_meal(self, db):
        with pytest.raises(ValidationError) as exc_info:
            create_department_order("admin-x", "2025/01/10", "lunch", ["u1"])
        assert exc_info.value.code == "INVALID_DATE"

        with pytest.raises(ValidationError) as exc_info:
            create_department_order("admin-x", "2025-01-10", "brunch", ["u1"])
        assert exc_info.value.code == "INVALID_MEAL_TYPE"

    def test_past_dates_allowed_unless_configured(self, db, config):
        order = create_department_order("admin-x", "2025-01-07", "lunch", ["u1"], now=DAY_BEFORE)
        assert order["dining_date"] == "2025-01-07"

        set_active_config(replace(config, reject_past_bookings=True))
        with pytest.raises(BusinessError) as exc_info:
            create_department_order("admin-x", "2025-01-07", "lunch", ["u2"], now=DAY_BEFORE)
        assert exc_info.value.code == "PAST_DINING_DATE"


class TestBatchOrders:
    def test_items_fail_independently(self, db):
        result = create_batch_department_orders(
            "admin-x",
            [
                _item(),
                _item(member_ids=["u1", "u2"]),
                _item(meal_type="brunch"),
                _item(meal_type="dinner", member_ids=["u2"]),
            ],
            now=DAY_BEFORE,
        )

        assert result["total_orders"] == 4
        assert result["success_count"] == 2
        assert result["failed_count"] == 2
        assert [order["meal_type"] for order in result["orders"]] == ["lunch", "dinner"]
        assert [(e["index"], e["code"]) for e in result["errors"]] == [
            (1, "DOUBLE_BOOKING"),
            (2, "INVALID_MEAL_TYPE"),
        ]
        listing = list_department_orders("admin-x", dining_date="2025-01-10")
        assert listing["meta"]["total"] == 2

    def test_empty_batch(self, db):
        with pytest.raises(ValidationError):
            create_batch_department_orders("admin-x", [], now=DAY_BEFORE)

    def test_quick_batch_books_every_meal(self, db):
        meals = [
            {"date": "2025-01-10", "meal_type": "lunch"},
            {"date": "2025-01-10", "meal_type": "dinner"},
            {"date": "2025-01-11", "meal_type": "breakfast"},
        ]
        result = create_quick_batch_orders("admin-x", ["u1", "u2"], meals, now=DAY_BEFORE)
        assert result["success_count"] == 3
        assert all(order["member_ids"] == ["u1", "u2"] for order in result["orders"])

        again = create_quick_batch_orders("admin-z", ["u2"], meals, now=DAY_BEFORE)
        assert again["success_count"] == 0
        assert {error["code"] for error in again["errors"]} == {"DOUBLE_BOOKING"}


class TestCancelOrder:
    def test_registrant_cancels(self, book):
        order = book(["u1", "u2"], remark="原始备注")

        cancelled = cancel_order(order["id"], "admin-x", reason="行程变更", now=DAY_BEFORE)

        assert cancelled["status"] == "cancelled"
        assert cancelled["dining_status"] == "cancelled"
        assert cancelled["remark"] == "原始备注\n取消原因: 行程变更"

    def test_cancelling_frees_the_slot(self, book):
        order = book(["u1", "u2"])
        cancel_order(order["id"], "admin-x", now=DAY_BEFORE)

        rebooked = book(["u2"], actor="admin-z")
        assert rebooked["member_ids"] == ["u2"]

    @pytest.mark.parametrize("actor", ["admin-z", "root"])
    def test_admins_may_cancel(self, book, actor):
        order = book(["u1"])
        assert cancel_order(order["id"], actor, now=DAY_BEFORE)["status"] == "cancelled"

    @pytest.mark.parametrize("actor", ["admin-y", "u1", "u-gone"])
    def test_others_may_not_cancel(self, book, actor):
        order = book(["u1"])
        with pytest.raises(AuthorizationError) as exc_info:
            cancel_order(order["id"], actor, now=DAY_BEFORE)
        assert exc_info.value.code == "ORDER_ACCESS_DENIED"

    def test_deadline_is_inclusive(self, book):
        order = book(["u1"])
        assert cancel_order(order["id"], "admin-x", now=DEADLINE)["status"] == "cancelled"

    def test_after_deadline(self, book):
        order = book(["u1"])
        with pytest.raises(BusinessError) as exc_info:
            cancel_order(order["id"], "admin-x", now=DEADLINE.replace(minute=1))
        assert exc_info.value.code == "CANCEL_DEADLINE_PASSED"

    def test_already_cancelled(self, book):
        order = book(["u1"])
        cancel_order(order["id"], "admin-x", now=DAY_BEFORE)
        with pytest.raises(ConflictError) as exc_info:
            cancel_order(order["id"], "admin-x", now=DAY_BEFORE)
        assert exc_info.value.code == "ORDER_ALREADY_CANCELLED"

    def test_dined_order_cannot_be_cancelled(self, book):
        order = book(["u1"])
        confirm_manually(order["id"], "u1", now=LUNCH_TIME)
        with pytest.raises(BusinessError) as exc_info:
            cancel_order(order["id"], "admin-x", now=DAY_BEFORE)
        assert exc_info.value.code == "ORDER_ALREADY_DINED"

    def test_unknown_order(self, db):
        with pytest.raises(NotFoundError) as exc_info:
            cancel_order("missing", "admin-x", now=DAY_BEFORE)
        assert exc_info.value.code == "ORDER_NOT_FOUND"


class TestQueries:
    def test_members_may_view_their_order(self, book):
        order = book(["u1", "u2"])
        assert get_order(order["id"], "u2")["id"] == order["id"]
        with pytest.raises(AuthorizationError):
            get_order(order["id"], "u4")

    def test_list_is_scoped_to_department(self, book):
        book(["u1"])
        book(["u2"], meal_type="dinner")
        book(["u4"], actor="admin-y")

        listing = list_department_orders("admin-x")
        assert listing["meta"]["total"] == 2
        assert {order["department_id"] for order in listing["data"]} == {"dept-rd"}

        dinner_only = list_department_orders("admin-x", meal_type="dinner", limit=1)
        assert [order["meal_type"] for order in dinner_only["data"]] == ["dinner"]
        assert dinner_only["meta"]["has_next"] is False

    def test_order_stats(self, book):
        book(["u1", "u2"])
        book(["u1"], meal_type="dinner")
        cancelled = book(["u3"], meal_type="breakfast")
        cancel_order(cancelled["id"], "admin-x", now=DAY_BEFORE)

        stats = get_department_order_stats("admin-x", "2025-01-01", "2025-01-31")

        assert stats["department_size"] == 5
        assert stats["total_orders"] == 2
        assert stats["total_members"] == 3
        assert stats["unique_users"] == 2
        assert stats["order_days"] == 1
        assert stats["meal_type_stats"] == {"breakfast": 0, "lunch": 2, "dinner": 1}
        assert stats["participation_rate"] == 40

    def test_department_members(self, db):
        roster = get_department_members("admin-x")
        assert roster["department"] == {"id": "dept-rd", "name": "研发部"}
        assert roster["total"] == 5
        assert roster["members"][0]["is_department_admin"] is True

        with_inactive = get_department_members("admin-x", include_inactive=True)
        assert with_inactive["total"] == 7

        assert [m["id"] for m in get_department_members("admin-x", keyword="李")["members"]] == [
            "u2"
        ]
