"""
Budget period calculator.

Computes the end date of a budget period and the boundaries of the following
period. Every budget-creation, editing and rollover flow goes through
``period_end``/``next_period`` instead of doing its own date arithmetic.
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import NamedTuple, Union

from models import PeriodType

logger = logging.getLogger(__name__)

# date.weekday(): Monday=0 .. Sunday=6
_SUNDAY = 6


class Period(NamedTuple):
    """Inclusive start/end dates of one budget period."""
    start: date
    end: date


def coerce_period_type(value: Union[PeriodType, str]) -> PeriodType:
    """
    Return the PeriodType named by ``value``.

    Args:
        value: PeriodType member or its name (case-insensitive)

    Returns:
        PeriodType member

    Raises:
        ValueError: If value does not name a period type
    """
    if isinstance(value, PeriodType):
        return value
    if isinstance(value, str):
        try:
            return PeriodType[value.strip().upper()]
        except KeyError:
            pass
    raise ValueError(f"Unknown period type: {value!r}")


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def _quarter_end(d: date) -> date:
    last_month = ((d.month - 1) // 3 + 1) * 3
    return _month_end(d.replace(month=last_month, day=1))


def period_end(start: Union[date, datetime], period_type: Union[PeriodType, str]) -> date:
    """
    Compute the last day of the period beginning at ``start``.

    WEEKLY periods end on the next Sunday (``start`` itself when it is a
    Sunday), MONTHLY on the last day of the month, QUARTERLY on the last day of
    the calendar quarter, YEARLY on December 31. ONE_TIME periods return
    ``start``; their real end date is supplied by the caller.

    Args:
        start: First day of the period
        period_type: PeriodType member or name

    Returns:
        Inclusive end date

    Raises:
        ValueError: If period_type is not a known period type
    """
    period_type = coerce_period_type(period_type)
    start = _as_date(start)

    if period_type is PeriodType.WEEKLY:
        return start + timedelta(days=(_SUNDAY - start.weekday()) % 7)
    if period_type is PeriodType.MONTHLY:
        return _month_end(start)
    if period_type is PeriodType.QUARTERLY:
        return _quarter_end(start)
    if period_type is PeriodType.YEARLY:
        return start.replace(month=12, day=31)
    if period_type is PeriodType.ONE_TIME:
        return start
    raise ValueError(f"Unhandled period type: {period_type!r}")


def next_period(start: Union[date, datetime], period_type: Union[PeriodType, str]) -> Period:
    """
    Return the period that follows the one beginning at ``start``.

    The day after the current period's end becomes the next start; the next
    end is recomputed from it.
    """
    next_start = period_end(start, period_type) + timedelta(days=1)
    result = Period(next_start, period_end(next_start, period_type))
    logger.debug("Next %s period after %s: %s to %s", period_type, start, result.start, result.end)
    return result


def period_contains(start: date, end: date, day: Union[date, datetime]) -> bool:
    """Return True if ``day`` falls inside the inclusive [start, end] range."""
    return start <= _as_date(day) <= end


def period_length_days(start: date, end: date) -> int:
    """Inclusive number of days between start and end."""
    return (end - start).days + 1
