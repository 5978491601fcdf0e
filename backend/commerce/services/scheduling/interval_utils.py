# backend/commerce/services/scheduling/interval_utils.py
"""
Interval arithmetic for replenishment cycles.

Periods use the fixed millisecond table in constants.py: a month is 30
days and a year is 365 days. Job timing depends on those values staying
consistent between the API and the worker, so nothing here consults a
calendar.
"""

import secrets
from datetime import datetime
from typing import Optional

from ...constants import SCHEDULER_ID_PREFIX, UNIT_MILLISECONDS
from ...enums import ReplenishmentUnit
from ...exceptions import InvalidScheduleError
from ...utils.time_utils import add_milliseconds, ensure_utc, to_epoch_ms, utc_now


def unit_to_milliseconds(unit: ReplenishmentUnit) -> int:
    """Milliseconds in one interval unit."""
    try:
        return UNIT_MILLISECONDS[ReplenishmentUnit(unit)]
    except ValueError as e:
        raise InvalidScheduleError(f"Unsupported interval unit: {unit}") from e


def period_ms(interval: int, unit: ReplenishmentUnit) -> int:
    """
    Length of one replenishment cycle.

    Raises:
        InvalidScheduleError: If interval is not a positive integer
    """
    if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
        raise InvalidScheduleError("Interval must be a positive integer")
    return interval * unit_to_milliseconds(unit)


def next_payment_date(
    last_payment_date: Optional[datetime],
    period: int,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Continuation date of a running replenishment.

    One period after the last payment; when that moment has already passed
    (or nothing was paid yet) the next cycle runs one period from now.
    """
    now = ensure_utc(now) if now else utc_now()
    if last_payment_date is not None:
        candidate = add_milliseconds(ensure_utc(last_payment_date), period)
        if candidate > now:
            return candidate
    return add_milliseconds(now, period)


def generate_scheduler_id(customer_id: int, now: Optional[datetime] = None) -> str:
    """Unique job scheduler key: prefix, customer, timestamp and random suffix."""
    timestamp = to_epoch_ms(now or utc_now())
    return f"{SCHEDULER_ID_PREFIX}:{customer_id}:{timestamp}:{secrets.token_hex(4)}"
