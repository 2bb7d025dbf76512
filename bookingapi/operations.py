"""Reads and writes against the samedi Booking API.

Each operation turns one API call into entities and maps error statuses onto
the exceptions in :mod:`bookingapi.errors`.
"""
import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
from fastapi.encoders import jsonable_encoder

from bookingapi.client import BookingAPIClient
from bookingapi.errors import (
    APIError,
    CommentFormValidationError,
    EventCategoryNotFound,
    EventTypeOrCategoryNotFound,
    EventUnavailable,
    ForbiddenWithCurrentInsuranceSettings,
    InstitutionNotFound,
)
from bookingapi.mappers import map_event_types
from bookingapi.models.booking import (
    BookingConfirmation,
    EventCategory,
    EventDate,
    EventType,
    Institution,
    Patient,
    Timeslot,
)

logger = logging.getLogger(__name__)

FIND_AVAILABLE_MONTH_LIMIT = 6
EVENT_UNAVAILABLE_ERROR = "The event is unavailable."

DateRange = Union[str, datetime.date, Tuple[datetime.date, datetime.date]]


def _data(response: httpx.Response) -> Any:
    try:
        return response.json()["data"]
    except (ValueError, KeyError, TypeError) as e:
        raise APIError("Unexpected response body") from e


def _raise_for_status(response: httpx.Response, not_found=None, forbidden=None):
    if response.status_code == 404 and not_found:
        raise not_found(f"Received status {response.status_code}")
    if response.status_code == 403 and forbidden:
        raise forbidden(f"Received status {response.status_code}")
    raise APIError(f"Received status {response.status_code}")


async def fetch_institution_details(client: BookingAPIClient, institution_id: str) -> Institution:
    response = await client.get(f"practices/{institution_id}")
    if not response.is_success:
        _raise_for_status(response, not_found=InstitutionNotFound)

    try:
        name = response.json()["name"]
    except (ValueError, KeyError, TypeError) as e:
        raise APIError("Unexpected response body") from e
    return Institution(id=institution_id, name=name)


async def fetch_event_categories(client: BookingAPIClient, institution: Institution) -> List[EventCategory]:
    response = await client.get("event_categories", params={"practice_id": institution.id})
    if not response.is_success:
        _raise_for_status(response, not_found=InstitutionNotFound)

    return [
        EventCategory(
            id=h["id"],
            institution=institution,
            name=h["name"],
            description=h.get("description"),
            subtitle=h.get("subtitle"),
            photo_url=h.get("photo_url"),
        )
        for h in _data(response)
    ]


async def find_event_category(
    client: BookingAPIClient, institution: Institution, event_category_id: Union[int, str]
) -> EventCategory:
    event_category_id = int(event_category_id)
    for event_category in await fetch_event_categories(client, institution):
        if event_category.id == event_category_id:
            return event_category
    raise EventCategoryNotFound(f"EventCategory {event_category_id} not found")


async def fetch_event_types(client: BookingAPIClient, event_category: EventCategory) -> List[EventType]:
    response = await client.get("event_types", params={"event_category_id": event_category.id})
    if not response.is_success:
        _raise_for_status(response, not_found=EventTypeOrCategoryNotFound)

    return map_event_types(_data(response), event_category=event_category)


async def find_event_type(
    client: BookingAPIClient, event_category: EventCategory, event_type_id: Union[int, str]
) -> EventType:
    event_type_id = int(event_type_id)
    for event_type in await fetch_event_types(client, event_category):
        if event_type.id == event_type_id:
            return event_type
    raise EventTypeOrCategoryNotFound(f"EventType {event_type_id} not found")


async def fetch_institution_category_and_type(
    client: BookingAPIClient,
    institution_id: str,
    event_category_id: Union[int, str],
    event_type_id: Union[int, str],
) -> Tuple[Institution, EventCategory, EventType]:
    institution = await fetch_institution_details(client, institution_id)
    event_category = await find_event_category(client, institution, event_category_id)
    event_type = await find_event_type(client, event_category, event_type_id)
    return institution, event_category, event_type


def _first_of_month_after(date: datetime.date, months: int) -> datetime.date:
    year_diff, month_index = divmod(date.month - 1 + months, 12)
    return datetime.date(date.year + year_diff, month_index + 1, 1)


def date_range_params(range_: DateRange, reference_date: datetime.date) -> Dict[str, str]:
    """Query parameters for ``dates`` requests.

    ``"current"`` leaves the range to the API (the current month),
    ``"find_available"`` asks for this and the following months up to
    ``FIND_AVAILABLE_MONTH_LIMIT``, a date asks for its month, and a
    ``(start, end)`` pair asks for the months between the two.
    """
    if range_ == "current":
        return {}
    if range_ == "find_available":
        to_month = _first_of_month_after(reference_date, FIND_AVAILABLE_MONTH_LIMIT - 1)
        return {"from": reference_date.isoformat(), "to": to_month.isoformat()}
    if isinstance(range_, datetime.date):
        return {"date": range_.isoformat()}
    if isinstance(range_, tuple) and len(range_) == 2:
        start, end = range_
        return {"from": start.isoformat(), "to": end.isoformat()}
    raise ValueError(f"Unsupported date range: {range_!r}")


async def fetch_event_dates(
    client: BookingAPIClient,
    event_type: EventType,
    range_: DateRange = "current",
    reference_date: Optional[datetime.date] = None,
) -> List[EventDate]:
    params = {
        "event_category_id": event_type.event_category.id,
        "event_type_id": event_type.id,
    }
    params.update(date_range_params(range_, reference_date or datetime.date.today()))

    response = await client.get("dates", params=params, cache=False)
    if not response.is_success:
        _raise_for_status(
            response,
            not_found=EventTypeOrCategoryNotFound,
            forbidden=ForbiddenWithCurrentInsuranceSettings,
        )

    return [
        EventDate(
            institution=event_type.institution,
            event_category=event_type.event_category,
            event_type=event_type,
            date=h["date"],
            available=h["available"],
        )
        for h in _data(response)
    ]


async def fetch_timeslots(
    client: BookingAPIClient,
    event_type: EventType,
    date: Optional[datetime.date] = None,
    from_date: Optional[datetime.date] = None,
    to_date: Optional[datetime.date] = None,
) -> List[Timeslot]:
    """Bookable timeslots for a day, a range of days, or today when neither is given."""
    params = {
        "event_category_id": event_type.event_category.id,
        "event_type_id": event_type.id,
    }
    if from_date and to_date:
        params["from"] = from_date.isoformat()
        params["to"] = to_date.isoformat()
    elif date:
        params["date"] = date.isoformat()

    response = await client.get("times", params=params, cache=False)
    if not response.is_success:
        _raise_for_status(
            response,
            not_found=EventTypeOrCategoryNotFound,
            forbidden=ForbiddenWithCurrentInsuranceSettings,
        )

    return [
        Timeslot(
            institution=event_type.institution,
            event_category=event_type.event_category,
            event_type=event_type,
            time=h["time"],
            token=h["token"],
        )
        for h in _data(response)
    ]


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _handle_booking_error(response: httpx.Response):
    status = response.status_code
    body = _error_body(response)

    if status == 400:
        error = body.get("error") or body.get("reason")
        if error is None:
            raise APIError("Unknown 400 error")
        if error == EVENT_UNAVAILABLE_ERROR:
            raise EventUnavailable(error)
        if error == "attendant_blocked":
            raise APIError(f"Attendant blocked. Overridable: {body.get('overridable')}")
        raise APIError(error)
    if status == 403:
        raise ForbiddenWithCurrentInsuranceSettings("Booking not allowed with current insurance settings")
    if status == 404:
        raise EventTypeOrCategoryNotFound("Event type or category not found")
    if status == 422:
        reason = body.get("reason")
        invalid_fields = body.get("invalid_fields")
        if reason is None or invalid_fields is None:
            raise APIError("Unknown 422 error")
        raise CommentFormValidationError(reason, invalid_fields)

    logger.error(f"Booking failed with unexpected status {status}")
    raise APIError(f"Received status {status}")


async def book_event(
    client: BookingAPIClient,
    patient: Patient,
    timeslot: Timeslot,
    structured_comment: Optional[Dict[str, Any]] = None,
) -> BookingConfirmation:
    body = {
        "event_category_id": timeslot.event_category.id,
        "event_type_id": timeslot.event_type.id,
        "starts_at": timeslot.time.isoformat(),
        "token": timeslot.token,
    }
    if structured_comment is not None:
        body["structured_comment"] = jsonable_encoder(structured_comment)

    response = await client.post(
        "book",
        json=body,
        headers={"Authorization": f"Bearer {patient.access_token}"},
    )
    if not response.is_success:
        _handle_booking_error(response)

    data = _data(response)
    logger.info(f"Booked event type {timeslot.event_type.id}, booking {data.get('id')}")
    return BookingConfirmation(id=data["id"])
