"""Billing period and timestamp arithmetic for the lifecycle engine."""

import calendar as cal
import math
from datetime import UTC, datetime, timedelta

from subscription_engine.models.plan import PlanInterval
from subscription_engine.schemas.lifecycle import InvalidTimestampError

SECONDS_PER_DAY = 24 * 60 * 60


def _add_interval(dt: datetime, interval: str) -> datetime:
    """Add one billing interval to a datetime."""
    if interval == PlanInterval.WEEKLY.value:
        return dt + timedelta(weeks=1)
    elif interval == PlanInterval.MONTHLY.value:
        return _add_months(dt, 1)
    elif interval == PlanInterval.QUARTERLY.value:
        return _add_months(dt, 3)
    elif interval == PlanInterval.YEARLY.value:
        return _add_months(dt, 12)
    raise ValueError(f"Unknown interval: {interval}")


def _add_months(dt: datetime, months: int) -> datetime:
    """Add months to a datetime, clamping to last day of month."""
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    max_day = cal.monthrange(year, month)[1]
    day = min(dt.day, max_day)
    return dt.replace(year=year, month=month, day=day)


def coerce_timestamp(value: object, field: str) -> datetime:
    """Turn a stored timestamp (datetime or ISO string) into an aware datetime.

    Raises:
        InvalidTimestampError: if the value is missing or cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise InvalidTimestampError(f"Invalid {field}: {value!r}") from None
    else:
        raise InvalidTimestampError(f"Invalid {field}: {value!r}")

    # Ensure timezone-aware (SQLite may strip tz info)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def days_until(target: datetime, now: datetime) -> int:
    """Whole days left until ``target``, rounded up."""
    return math.ceil((target - now).total_seconds() / SECONDS_PER_DAY)


def days_since(start: datetime, now: datetime) -> int:
    """Whole days elapsed since ``start``, rounded down."""
    return math.floor((now - start).total_seconds() / SECONDS_PER_DAY)


def next_period_end(
    period_start: datetime,
    interval: str | None,
    default_cycle_days: int,
) -> datetime:
    """End of the billing cycle that starts at ``period_start``.

    Prices with a calendar interval use calendar arithmetic; prices without
    one fall back to a fixed number of days.
    """
    if interval:
        return _add_interval(period_start, interval)
    return period_start + timedelta(days=default_cycle_days)
