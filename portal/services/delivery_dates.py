"""Delivery date rules relative to the daily order cutoff."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta

from portal.core.errors import ConfigurationError, ValidationError

ORDER_TIME_LIMIT_PATTERN: re.Pattern[str] = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")
DATE_FORMAT: str = "%Y-%m-%d"


def parse_order_time_limit(value: str | None) -> time:
    """Parse an ``HH:MM`` 24h cutoff, raising ``ConfigurationError`` otherwise."""
    if not value or not ORDER_TIME_LIMIT_PATTERN.match(value):
        raise ConfigurationError(error=f"Invalid order time limit: {value!r}")
    hours, minutes = value.split(":")
    return time(hour=int(hours), minute=int(minutes))


def is_valid_order_time_limit(value: str | None) -> bool:
    return bool(value) and ORDER_TIME_LIMIT_PATTERN.match(value) is not None


def calculate_delivery_date(now: datetime, order_time_limit: str) -> date:
    """Return the earliest delivery date for an order placed at ``now``.

    Before the cutoff the order ships the next calendar day; at or after the
    cutoff it needs one more day.
    """
    cutoff: time = parse_order_time_limit(order_time_limit)
    delivery: date = now.date() + timedelta(days=1)
    if now.time() >= cutoff:
        delivery += timedelta(days=1)
    return delivery


def minimum_delivery_date(now: datetime, order_time_limit: str) -> date:
    """Earliest date a caller may request; same rule as ``calculate_delivery_date``."""
    return calculate_delivery_date(now, order_time_limit)


def is_acceptable_delivery_date(requested: date | datetime, now: datetime, order_time_limit: str) -> bool:
    """Compare calendar dates only, ignoring any time-of-day on ``requested``."""
    requested_day = requested.date() if isinstance(requested, datetime) else requested
    return requested_day >= minimum_delivery_date(now, order_time_limit)


def format_delivery_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def parse_requested_date(value: str | date | None, *, field: str = "delivery_date") -> date | None:
    """Parse a ``YYYY-MM-DD`` (or ISO datetime) value supplied by a caller."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise ValidationError(f"Formato de fecha inválido para {field}. Use YYYY-MM-DD") from exc
