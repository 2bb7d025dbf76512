import datetime
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException

from bookingapi.calendar import EventDateCalendar
from bookingapi.client import BookingAPIClient, get_booking_client
from bookingapi.operations import (
    fetch_event_dates,
    fetch_institution_category_and_type,
    fetch_timeslots,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/event_dates", status_code=200)
async def list_event_dates(
    institution_id: str,
    event_category_id: int,
    event_type_id: int,
    client: Annotated[BookingAPIClient, Depends(get_booking_client)],
    month: Optional[str] = None,
):
    if month:
        try:
            range_ = datetime.date.fromisoformat(f"{month}-01")
        except ValueError:
            raise HTTPException(status_code=400, detail="month must be formatted as YYYY-MM")
    else:
        range_ = "find_available"

    _, _, event_type = await fetch_institution_category_and_type(
        client, institution_id, event_category_id, event_type_id
    )
    event_dates = await fetch_event_dates(client, event_type, range_=range_)

    calendar = EventDateCalendar(event_dates)
    try:
        month_view = calendar.find_month_with_available_days()
    except ValueError:
        raise HTTPException(status_code=404, detail="No dates available")
    return {
        "month": month_view.month,
        "previous_month": month_view.previous_month,
        "next_month": month_view.next_month,
        "weekdays_until_first_day": month_view.weekdays_until_first_day,
        "days_of_week": month_view.days_of_week,
        "event_dates": [
            {"date": ed.date, "available": ed.available} for ed in month_view.event_dates
        ],
    }


@router.get("/event_timeslots", status_code=200)
async def list_timeslots(
    institution_id: str,
    event_category_id: int,
    event_type_id: int,
    event_date: datetime.date,
    client: Annotated[BookingAPIClient, Depends(get_booking_client)],
):
    _, _, event_type = await fetch_institution_category_and_type(
        client, institution_id, event_category_id, event_type_id
    )
    timeslots = await fetch_timeslots(client, event_type, date=event_date)
    return {
        "date": event_date,
        "timeslots": [
            {"time": ts.time, "new_booking_params": ts.booking_params()} for ts in timeslots
        ],
    }
