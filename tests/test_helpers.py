"""
tests/test_helpers.py: Request-parsing helpers.
"""

from datetime import date, datetime

import pytest

from renovation_planner.utils.helpers import parse_date_input, parse_id_list


class TestParseIdList:
    def test_none_is_empty(self):
        assert parse_id_list(None) == set()

    def test_ints_deduplicated(self):
        assert parse_id_list([3, 1, 3]) == {1, 3}

    @pytest.mark.parametrize("value", [[2.7], ["3"], [True], [None], [[1]]])
    def test_non_integer_elements_rejected(self, value):
        with pytest.raises(ValueError, match="excluded_task_ids must contain integer ids"):
            parse_id_list(value, "excluded_task_ids")

    def test_float_not_truncated(self):
        with pytest.raises(ValueError):
            parse_id_list([1, 2.0])

    def test_non_list_rejected(self):
        with pytest.raises(ValueError, match="must be a list"):
            parse_id_list("1,2")


class TestParseDateInput:
    @pytest.mark.parametrize("raw", ["2026-03-02", "2026-03-02T08:30:00", "02.03.2026"])
    def test_formats(self, raw):
        assert parse_date_input(raw) == date(2026, 3, 2)

    def test_date_and_datetime_objects(self):
        assert parse_date_input(date(2026, 3, 2)) == date(2026, 3, 2)
        assert parse_date_input(datetime(2026, 3, 2, 9, 0)) == date(2026, 3, 2)

    def test_empty_is_none(self):
        assert parse_date_input("") is None
        assert parse_date_input(None) is None

    def test_garbage(self):
        with pytest.raises(ValueError, match="Invalid date format"):
            parse_date_input("next tuesday")
