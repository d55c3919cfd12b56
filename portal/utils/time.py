"""Business clock helpers."""

from __future__ import annotations

from datetime import datetime, time
from zoneinfo import ZoneInfo

from portal.core.config import settings


def now_local() -> datetime:
    """Return the current wall time in the business timezone.

    Order timestamps and the cutoff are compared as naive local times, so the
    tzinfo is dropped after conversion.
    """
    return datetime.now(ZoneInfo(settings.app_timezone)).replace(tzinfo=None)


def at_time(moment: datetime, value: time) -> datetime:
    """Return ``moment``'s calendar day at the given time of day."""
    return moment.replace(hour=value.hour, minute=value.minute, second=0, microsecond=0)
