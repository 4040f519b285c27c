"""
Recurrence Resolver

Decides whether a fixed bill or a forecast shows up in a given month.
Month keys compare lexicographically in calendar order.
"""

from typing import Iterable, TypeVar, Union

from lyvo.models.ledger import FixedBill, Forecast

RecurringEntry = Union[FixedBill, Forecast]
T = TypeVar("T", FixedBill, Forecast)


def applies_to_month(entity: RecurringEntry, month: str) -> bool:
    """
    Pure predicate shared by fixed bills and forecasts.

    - never before start_month
    - never from ended_at onward (applies for months < ended_at)
    - never in a skipped month
    - a non-recurring forecast applies only in its start_month
    """
    if month < entity.start_month:
        return False
    if isinstance(entity, Forecast) and not entity.is_recurring and month != entity.start_month:
        return False
    if month in entity.skipped_months:
        return False
    if entity.ended_at and month >= entity.ended_at:
        return False
    return True


def filter_for_month(entities: Iterable[T], month: str) -> list[T]:
    return [entity for entity in entities if applies_to_month(entity, month)]
