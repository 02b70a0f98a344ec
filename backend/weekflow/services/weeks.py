"""
Week-number arithmetic.

Weeks are ISO-8601 week numbers (Monday start). Week numbers are treated as
plain integers across the engine; the year is only needed to map a week back
to calendar dates.
"""

from datetime import date, timedelta


def calendar_week(day: date) -> int:
    """ISO week number of a date."""
    return day.isocalendar()[1]


def week_start(year: int, week_number: int) -> date:
    """
    Monday of the given ISO week. Out-of-range weeks spill into the
    neighbouring year instead of failing.
    """
    jan4 = date(year, 1, 4)
    first_monday = jan4 - timedelta(days=jan4.weekday())
    return first_monday + timedelta(weeks=week_number - 1)
