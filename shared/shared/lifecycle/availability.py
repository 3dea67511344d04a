from datetime import date, timedelta
from typing import FrozenSet, Iterable, List

from shared.lifecycle.exceptions import InvalidInputException

BUFFER_DAYS = 1  # cleaning / transit day after the rental ends


def date_span(start_date: date, end_date: date) -> FrozenSet[date]:
    """Every day from start_date through end_date, inclusive."""
    if end_date < start_date:
        raise InvalidInputException(
            f"end date {end_date.isoformat()} is before start date {start_date.isoformat()}"
        )
    days = (end_date - start_date).days
    return frozenset(start_date + timedelta(days=i) for i in range(days + 1))


def dates_to_block(start_date: date, end_date: date) -> FrozenSet[date]:
    """Every day from start_date through end_date plus the buffer day, inclusive."""
    return date_span(start_date, end_date + timedelta(days=BUFFER_DAYS))


def find_conflicts(
    blocked: Iterable[date], start_date: date, end_date: date
) -> List[date]:
    wanted = dates_to_block(start_date, end_date)
    return sorted(wanted.intersection(blocked))
