"""Delivery date calculator tests."""

from datetime import date, datetime, time

import pytest

from portal.core.errors import ConfigurationError, ValidationError
from portal.services.delivery_dates import (
    calculate_delivery_date,
    format_delivery_date,
    is_acceptable_delivery_date,
    is_valid_order_time_limit,
    minimum_delivery_date,
    parse_order_time_limit,
    parse_requested_date,
)


@pytest.mark.parametrize("value", ["", None, "24:00", "9:00", "18:60", "18-00", "1800", "18:00:00", "ab:cd", " 18:00"])
def test_malformed_cutoff_raises_configuration_error(value) -> None:
    with pytest.raises(ConfigurationError):
        calculate_delivery_date(datetime(2024, 1, 1, 10, 0), value)
    assert is_valid_order_time_limit(value) is False


def test_parse_order_time_limit_accepts_boundaries() -> None:
    assert parse_order_time_limit("00:00") == time(0, 0)
    assert parse_order_time_limit("23:59") == time(23, 59)
    assert parse_order_time_limit("09:30") == time(9, 30)


def test_configuration_error_keeps_raw_cause_out_of_message() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        parse_order_time_limit("25:00")

    assert exc_info.value.message == "Error en la configuración del sistema"
    assert "25:00" in exc_info.value.error


def test_one_minute_either_side_of_cutoff_differs_by_one_day() -> None:
    before = calculate_delivery_date(datetime(2024, 1, 1, 17, 59), "18:00")
    after = calculate_delivery_date(datetime(2024, 1, 1, 18, 1), "18:00")

    assert before == date(2024, 1, 2)
    assert after == date(2024, 1, 3)
    assert (after - before).days == 1


def test_exact_cutoff_counts_as_after() -> None:
    assert calculate_delivery_date(datetime(2024, 3, 4, 18, 0), "18:00") == date(2024, 3, 6)


def test_delivery_date_rolls_over_month_end() -> None:
    assert calculate_delivery_date(datetime(2024, 2, 28, 19, 0), "18:00") == date(2024, 3, 1)
    assert calculate_delivery_date(datetime(2024, 12, 31, 8, 0), "18:00") == date(2025, 1, 1)


def test_weekends_are_not_skipped() -> None:
    # Friday evening still lands on Sunday; business-day skipping is not applied.
    assert calculate_delivery_date(datetime(2024, 3, 8, 19, 0), "18:00") == date(2024, 3, 10)


def test_acceptable_delivery_date_compares_calendar_days() -> None:
    now = datetime(2024, 3, 4, 10, 0)

    assert minimum_delivery_date(now, "18:00") == date(2024, 3, 5)
    assert is_acceptable_delivery_date(date(2024, 3, 5), now, "18:00") is True
    assert is_acceptable_delivery_date(datetime(2024, 3, 5, 0, 1), now, "18:00") is True
    assert is_acceptable_delivery_date(date(2024, 3, 4), now, "18:00") is False


def test_format_and_parse_requested_date() -> None:
    assert format_delivery_date(date(2024, 3, 5)) == "2024-03-05"
    assert parse_requested_date("2024-03-05") == date(2024, 3, 5)
    assert parse_requested_date("2024-03-05T12:00:00") == date(2024, 3, 5)
    assert parse_requested_date(None) is None
    assert parse_requested_date("") is None


def test_parse_requested_date_rejects_garbage() -> None:
    with pytest.raises(ValidationError):
        parse_requested_date("05/03/2024")
