"""
Tests for input parsing, member list rules and the meal window guard.
"""

from dataclasses import replace
from datetime import date, datetime, time, timezone

import pytest

from canteen.config import set_active_config
from canteen.errors import AuthorizationError, BusinessError, ValidationError
from canteen.services.directory_service import DirectoryUser
from canteen.services.meal_window_service import MealWindowService, parse_window
from canteen.validation import (
    check_dining_time,
    find_double_booked,
    find_duplicate_ids,
    parse_dining_date,
    parse_meal_type,
    require_admin,
    validate_member_ids,
    validate_pagination,
)


def _utc(hour, minute=0, day=10):
    return datetime(2025, 1, day, hour, minute, tzinfo=timezone.utc)


def _directory_user(**overrides):
    defaults = {
        "id": "admin-x",
        "name": "管理员X",
        "department_id": "dept-rd",
        "department_name": "研发部",
        "role": "dept_admin",
        "status": "active",
    }
    defaults.update(overrides)
    return DirectoryUser(**defaults)


class TestParsing:
    def test_date_string(self):
        assert parse_dining_date("2025-01-10") == date(2025, 1, 10)

    def test_date_object_passes_through(self):
        assert parse_dining_date(date(2025, 1, 10)) == date(2025, 1, 10)

    @pytest.mark.parametrize("value", ["2025/01/10", "10-01-2025", "2025-02-30", ""])
    def test_bad_date(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_dining_date(value)
        assert exc_info.value.code == "INVALID_DATE"

    def test_meal_type(self):
        assert parse_meal_type("dinner") == "dinner"

    def test_unknown_meal_type(self):
        with pytest.raises(ValidationError, match="breakfast, lunch, dinner") as exc_info:
            parse_meal_type("supper")
        assert exc_info.value.code == "INVALID_MEAL_TYPE"


class TestMemberIds:
    def test_empty_list_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_member_ids([])
        assert exc_info.value.code == "EMPTY_MEMBERS"

    def test_duplicates_rejected_with_ids(self):
        with pytest.raises(ValidationError, match="u2") as exc_info:
            validate_member_ids(["u1", "u2", "u3", "u2"])
        assert exc_info.value.code == "DUPLICATE_MEMBERS"
        assert exc_info.value.details["duplicate_ids"] == ["u2"]

    def test_find_duplicate_ids_reports_each_once(self):
        assert find_duplicate_ids(["a", "b", "a", "a", "b", "c"]) == ["a", "b"]

    def test_find_double_booked_keeps_candidate_order(self):
        booked = [["u1", "u2"], ["u7"]]
        assert find_double_booked(["u3", "u2", "u7"], booked) == ["u2", "u7"]

    def test_find_double_booked_without_bookings(self):
        assert find_double_booked(["u1"], []) == []


class TestRequireAdmin:
    def test_dept_and_sys_admin_pass(self):
        require_admin(_directory_user())
        require_admin(_directory_user(role="sys_admin"))

    @pytest.mark.parametrize(
        "user",
        [
            None,
            _directory_user(role="user"),
            _directory_user(role="verifier"),
            _directory_user(status="inactive"),
        ],
    )
    def test_rejected(self, user):
        with pytest.raises(AuthorizationError) as exc_info:
            require_admin(user)
        assert exc_info.value.code == "INSUFFICIENT_PERMISSIONS"


class TestMealWindows:
    def test_parse_window(self):
        window = parse_window("lunch", "11:00-14:00")
        assert window.start == time(11, 0)
        assert window.end == time(14, 0)
        assert window.label == "11:00-14:00"

    @pytest.mark.parametrize("raw", ["11-14", "14:00-11:00", "lunch"])
    def test_parse_window_rejects_bad_input(self, raw):
        with pytest.raises(ValueError):
            parse_window("lunch", raw)

    def test_both_ends_inclusive_to_the_minute(self):
        window = parse_window("lunch", "11:00-14:59")
        assert window.contains(time(11, 0))
        assert window.contains(time(14, 59, 59))
        assert not window.contains(time(10, 59, 59))
        assert not window.contains(time(15, 0))

    def test_default_windows_cover_the_whole_end_hour(self, config):
        # 06:30Z is 14:30 and 02:30Z is 10:30 in Shanghai.
        assert MealWindowService.is_in_dining_time("lunch", _utc(6, 30))
        assert MealWindowService.is_in_dining_time("breakfast", _utc(2, 30))
        assert MealWindowService.is_in_dining_time("dinner", _utc(12, 59))
        assert not MealWindowService.is_in_dining_time("lunch", _utc(7, 0))
        assert MealWindowService.meal_type_at(_utc(6, 59)) == "lunch"

    def test_windows_evaluated_in_canteen_zone(self, config):
        # 03:00Z is 11:00 in Shanghai.
        assert MealWindowService.is_in_dining_time("lunch", _utc(3, 0))
        assert not MealWindowService.is_in_dining_time("lunch", _utc(2, 59))

    def test_meal_type_at(self, config):
        assert MealWindowService.meal_type_at(_utc(23, 30, day=9)) == "breakfast"
        assert MealWindowService.meal_type_at(_utc(4)) == "lunch"
        assert MealWindowService.meal_type_at(_utc(10)) == "dinner"
        assert MealWindowService.meal_type_at(_utc(8)) is None

    def test_configured_windows_override_defaults(self, config):
        windows = {**config.meal_windows, "lunch": "12:00-13:00"}
        set_active_config(replace(config, meal_windows=windows))
        MealWindowService.reset()
        assert not MealWindowService.is_in_dining_time("lunch", _utc(3, 30))
        assert MealWindowService.is_in_dining_time("lunch", _utc(4, 30))


class TestCheckDiningTime:
    def test_today_inside_window(self, config):
        check_dining_time(date(2025, 1, 10), "lunch", _utc(4))

    def test_late_in_the_end_hour(self, config):
        check_dining_time(date(2025, 1, 10), "breakfast", _utc(2, 30))

    def test_today_outside_window(self, config):
        with pytest.raises(BusinessError, match="11:00-14:59") as exc_info:
            check_dining_time(date(2025, 1, 10), "lunch", _utc(8))
        assert exc_info.value.code == "OUTSIDE_DINING_TIME"

    def test_past_date_unrestricted(self, config):
        check_dining_time(date(2025, 1, 9), "breakfast", _utc(8))

    def test_future_date_allowed_by_default(self, config):
        check_dining_time(date(2025, 1, 12), "dinner", _utc(8))

    def test_future_date_rejected_when_disabled(self, config):
        set_active_config(replace(config, allow_future_confirmation=False))
        with pytest.raises(BusinessError) as exc_info:
            check_dining_time(date(2025, 1, 12), "dinner", _utc(8))
        assert exc_info.value.code == "FUTURE_CONFIRMATION"

    def test_local_date_decides_today(self, config):
        # 2025-01-09 17:30Z is already 01:30 on the 10th in Shanghai.
        with pytest.raises(BusinessError):
            check_dining_time(date(2025, 1, 10), "lunch", _utc(17, 30, day=9))


class TestPagination:
    @pytest.mark.parametrize(
        "page, limit, expected",
        [(None, None, (1, 20)), (0, 0, (1, 20)), (3, 500, (3, 100)), (2, 10, (2, 10))],
    )
    def test_normalized(self, page, limit, expected):
        assert validate_pagination(page, limit) == expected
