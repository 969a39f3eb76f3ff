"""Tenure and leave-year arithmetic.

Tenure is counted in whole calendar months, not 30-day buckets: a month
is complete once the day of the month reaches the joining day.
"""

from __future__ import annotations

import calendar
from datetime import date


def tenure_months(date_of_joining: date, reference: date | None = None) -> int:
    """Whole calendar months between the join date and ``reference`` (default today).

    A join date in the future yields 0.
    """
    if reference is None:
        reference = date.today()
    months = (reference.year - date_of_joining.year) * 12 + (reference.month - date_of_joining.month)
    if reference.day < date_of_joining.day:
        months -= 1
    return max(months, 0)


def anniversary_in_year(date_of_joining: date, year: int) -> date:
    """The work anniversary falling in ``year``.

    Feb 29 joiners celebrate on Feb 28 in non-leap years.
    """
    day = min(date_of_joining.day, calendar.monthrange(year, date_of_joining.month)[1])
    return date(year, date_of_joining.month, day)


def leave_year_for(date_of_joining: date, on: date) -> int:
    """Label of the leave year containing ``on``.

    A leave year starts on a work anniversary and is labelled by the
    calendar year it starts in. Dates before joining belong to the first
    leave year.
    """
    year = on.year
    if on < anniversary_in_year(date_of_joining, year):
        year -= 1
    return max(year, date_of_joining.year)


def next_anniversary(date_of_joining: date, leave_year: int) -> date:
    """First day of the leave year after ``leave_year``."""
    return anniversary_in_year(date_of_joining, leave_year + 1)


def period_key(on: date) -> str:
    """Accrual period marker, ``YYYY-MM``."""
    return f"{on.year:04d}-{on.month:02d}"
