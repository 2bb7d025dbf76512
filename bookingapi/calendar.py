import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel

from bookingapi.models.booking import EventDate

MONTH_FORMAT = "%Y-%m"


class CalendarMonth(BaseModel):
    month: str
    event_dates: List[EventDate]
    weekdays_until_first_day: int
    days_of_week: List[int]
    previous_month: Optional[str] = None
    next_month: Optional[str] = None


def _shift_month(month: datetime.date, delta: int) -> datetime.date:
    year_diff, month_index = divmod(month.month - 1 + delta, 12)
    return datetime.date(month.year + year_diff, month_index + 1, 1)


class EventDateCalendar:
    """Arranges event dates into the month shown by the date picker.

    Weekdays are numbered 0 (Sunday) to 6 (Saturday). Month and day names are
    left to the presentation layer.
    """

    def __init__(
        self,
        event_dates: List[EventDate],
        reference_date: Optional[datetime.date] = None,
        first_day_of_week: int = 1,
    ):
        self.event_dates = event_dates
        self.reference_date = reference_date or datetime.date.today()
        self.first_day_of_week = first_day_of_week

    def months(self) -> List[Tuple[datetime.date, List[EventDate]]]:
        """Event dates grouped by month, skipping months with a single date."""
        grouped = {}
        for event_date in self.event_dates:
            grouped.setdefault(event_date.date.replace(day=1), []).append(event_date)
        return [(month, dates) for month, dates in grouped.items() if len(dates) != 1]

    def first_available_or_last_month(self) -> Tuple[datetime.date, List[EventDate]]:
        months = self.months()
        if not months:
            raise ValueError("No months to show")
        for month, event_dates in months:
            if any(ed.available for ed in event_dates):
                return month, event_dates
        return months[-1]

    def days_of_week(self) -> List[int]:
        return [(day + self.first_day_of_week) % 7 for day in range(7)]

    def weekdays_until(self, date: datetime.date) -> int:
        # isoweekday() is 1 (Monday) to 7 (Sunday)
        return (date.isoweekday() % 7 - self.first_day_of_week) % 7

    def previous_and_next_months(self, month: datetime.date) -> Tuple[Optional[str], str]:
        previous_month = _shift_month(month, -1)
        if previous_month < self.reference_date.replace(day=1):
            previous_month = None
        next_month = _shift_month(month, 1)
        return (
            previous_month.strftime(MONTH_FORMAT) if previous_month else None,
            next_month.strftime(MONTH_FORMAT),
        )

    def find_month_with_available_days(self) -> CalendarMonth:
        month, event_dates = self.first_available_or_last_month()
        previous_month, next_month = self.previous_and_next_months(month)
        return CalendarMonth(
            month=month.strftime(MONTH_FORMAT),
            event_dates=event_dates,
            weekdays_until_first_day=self.weekdays_until(event_dates[0].date),
            days_of_week=self.days_of_week(),
            previous_month=previous_month,
            next_month=next_month,
        )
