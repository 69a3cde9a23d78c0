# backend/maintdb/apps/scheduling/recurrence.py
#
# Date arithmetic for recurring maintenance schedules.
#
# Month-based steps use calendar months via dateutil.relativedelta: the day
# is kept when possible and clamped to the last day of the target month
# otherwise (2024-01-31 + 1 month -> 2024-02-29).

from __future__ import annotations

from datetime import date
from typing import Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

from maintdb.errors import InvalidRecurrence

from .models import RecurrenceTypeEnum

RecurrenceLike = Union[RecurrenceTypeEnum, str, None]

_MONTHS_PER_STEP = {
    RecurrenceTypeEnum.MONTHLY: 1,
    RecurrenceTypeEnum.QUARTERLY: 3,
    RecurrenceTypeEnum.SEMIANNUAL: 6,
}


def coerce_recurrence_type(recurrence_type: RecurrenceLike) -> Optional[RecurrenceTypeEnum]:
    """None / "" mean "not recurring"; unknown names raise InvalidRecurrence."""
    if recurrence_type is None or recurrence_type == "":
        return None
    if isinstance(recurrence_type, RecurrenceTypeEnum):
        return recurrence_type
    try:
        return RecurrenceTypeEnum(str(recurrence_type).strip().lower())
    except ValueError:
        raise InvalidRecurrence(
            detail=[{"field": "recurrence_type", "reason": f"unknown recurrence type {recurrence_type!r}"}]
        )


def _step(recurrence_type: RecurrenceTypeEnum, interval: int) -> relativedelta:
    if recurrence_type == RecurrenceTypeEnum.DAILY:
        return relativedelta(days=interval)
    if recurrence_type == RecurrenceTypeEnum.WEEKLY:
        return relativedelta(weeks=interval)
    if recurrence_type == RecurrenceTypeEnum.YEARLY:
        return relativedelta(years=interval)
    return relativedelta(months=_MONTHS_PER_STEP[recurrence_type] * interval)


def next_occurrence(
    start: date,
    recurrence_type: RecurrenceLike,
    interval: Optional[int] = 1,
) -> Optional[date]:
    """
    Date of the occurrence following `start`.

    Returns None when there is no recurrence. An interval of 0 gives `start`
    back unchanged; creation paths reject it through `validate_recurrence`.
    """
    kind = coerce_recurrence_type(recurrence_type)
    if kind is None:
        return None
    if interval is None:
        interval = 1
    if interval < 0:
        raise InvalidRecurrence(
            detail=[{"field": "recurrence_interval", "reason": "interval cannot be negative"}]
        )
    return start + _step(kind, interval)


def validate_recurrence(
    recurrence_type: RecurrenceLike,
    interval: Optional[int],
) -> Tuple[Optional[RecurrenceTypeEnum], Optional[int]]:
    """
    Normalise the rule stored on a schedule: returns (type, interval).

    A missing interval on a recurring schedule means 1; explicit values below
    1 raise InvalidRecurrence. Without a type the interval is dropped.
    """
    kind = coerce_recurrence_type(recurrence_type)
    if kind is None:
        return None, None
    if interval is None:
        return kind, 1
    if interval < 1:
        raise InvalidRecurrence(
            detail=[{"field": "recurrence_interval", "reason": "interval must be at least 1"}]
        )
    return kind, interval
