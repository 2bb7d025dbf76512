import datetime
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from bookingapi.client import BookingAPIClient, get_booking_client
from bookingapi.forms.booking_details import BookingDetails
from bookingapi.forms.builder import get_model_builder
from bookingapi.models.booking import BookingConfirmation, EventType, Patient, Timeslot
from bookingapi.models.comment_form import CommentForm
from bookingapi.operations import book_event, fetch_institution_category_and_type
from bookingapi.security import get_current_patient

logger = logging.getLogger(__name__)
router = APIRouter()


def comment_form_of(event_type: EventType) -> CommentForm:
    return event_type.comment_form or CommentForm(event_type_id=event_type.id)


def build_timeslot(event_type: EventType, time: datetime.datetime, token: str) -> Timeslot:
    return Timeslot(
        institution=event_type.institution,
        event_category=event_type.event_category,
        event_type=event_type,
        time=time,
        token=token,
    )


@router.get("/new", status_code=200)
async def new_booking(
    institution_id: str,
    event_category_id: int,
    event_type_id: int,
    time: datetime.datetime,
    token: str,
    client: Annotated[BookingAPIClient, Depends(get_booking_client)],
):
    _, _, event_type = await fetch_institution_category_and_type(
        client, institution_id, event_category_id, event_type_id
    )
    timeslot = build_timeslot(event_type, time=time, token=token)
    model = get_model_builder().build(comment_form_of(event_type))

    return {
        "event_type": {"id": event_type.id, "name": event_type.name},
        "booking_details": BookingDetails.build_from_timeslot(timeslot),
        "comment_form": [attribute.hints() for attribute in model.attributes],
    }


@router.post("", status_code=201)
async def create_booking(
    booking_details: BookingDetails,
    patient: Annotated[Patient, Depends(get_current_patient)],
    client: Annotated[BookingAPIClient, Depends(get_booking_client)],
):
    _, _, event_type = await fetch_institution_category_and_type(
        client,
        booking_details.institution_id,
        booking_details.event_category_id,
        booking_details.event_type_id,
    )

    instance, failures = booking_details.validate_with(comment_form_of(event_type))
    if failures:
        logger.debug(f"Booking details rejected: {failures}")
        raise HTTPException(
            status_code=422,
            detail={"errors": [failure.as_dict() for failure in failures]},
        )

    timeslot = build_timeslot(event_type, time=booking_details.starts_at, token=booking_details.token)
    confirmation = await book_event(
        client, patient, timeslot, structured_comment=instance.serialize()
    )
    return {"id": confirmation.id}


@router.get("/{booking_id}/success", response_model=BookingConfirmation, status_code=200)
async def booking_success(booking_id: str):
    return BookingConfirmation(id=booking_id)
