import datetime

import pytest

from bookingapi.calendar import EventDateCalendar
from bookingapi.models.booking import EventDate


@pytest.fixture()
def make_dates(event_type):
    def _make_dates(*dates, available=()):
        return [
            EventDate(
                institution=event_type.institution,
                event_category=event_type.event_category,
                event_type=event_type,
                date=d,
                available=d in available,
            )
            for d in dates
        ]

    return _make_dates


def month_days(year, month, count):
    return [datetime.date(year, month, day).isoformat() for day in range(1, count + 1)]


def test_months_skip_single_date_months(make_dates):
    dates = make_dates(*month_days(2024, 3, 31), "2024-04-01")

    months = EventDateCalendar(dates, reference_date=datetime.date(2024, 3, 10)).months()

    assert [m for m, _ in months] == [datetime.date(2024, 3, 1)]
    assert len(months[0][1]) == 31


def test_first_month_with_available_days(make_dates):
    dates = make_dates(*month_days(2024, 3, 31), *month_days(2024, 4, 30), available={"2024-04-15"})

    month, event_dates = EventDateCalendar(dates).first_available_or_last_month()

    assert month == datetime.date(2024, 4, 1)
    assert event_dates[0].date == datetime.date(2024, 4, 1)


def test_last_month_when_nothing_is_available(make_dates):
    dates = make_dates(*month_days(2024, 3, 31), *month_days(2024, 4, 30))

    month, _ = EventDateCalendar(dates).first_available_or_last_month()

    assert month == datetime.date(2024, 4, 1)


def test_no_months_raises(make_dates):
    with pytest.raises(ValueError):
        EventDateCalendar(make_dates("2024-03-01")).first_available_or_last_month()


def test_weekdays_until_and_days_of_week():
    monday_first = EventDateCalendar([], first_day_of_week=1)
    sunday_first = EventDateCalendar([], first_day_of_week=0)
    friday = datetime.date(2024, 3, 1)

    assert monday_first.weekdays_until(friday) == 4
    assert sunday_first.weekdays_until(friday) == 5
    assert monday_first.days_of_week() == [1, 2, 3, 4, 5, 6, 0]
    assert sunday_first.days_of_week() == [0, 1, 2, 3, 4, 5, 6]


def test_previous_and_next_months():
    calendar = EventDateCalendar([], reference_date=datetime.date(2024, 12, 20))

    assert calendar.previous_and_next_months(datetime.date(2024, 12, 1)) == (None, "2025-01")
    assert calendar.previous_and_next_months(datetime.date(2025, 1, 1)) == ("2024-12", "2025-02")


def test_find_month_with_available_days(make_dates):
    dates = make_dates(*month_days(2024, 3, 31), available={"2024-03-05"})

    view = EventDateCalendar(dates, reference_date=datetime.date(2024, 3, 1)).find_month_with_available_days()

    assert view.month == "2024-03"
    assert view.previous_month is None
    assert view.next_month == "2024-04"
    assert view.weekdays_until_first_day == 4
    assert len(view.event_dates) == 31
