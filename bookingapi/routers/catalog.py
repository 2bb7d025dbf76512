import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from bookingapi.client import BookingAPIClient, get_booking_client
from bookingapi.operations import (
    fetch_event_categories,
    fetch_event_types,
    fetch_institution_details,
    find_event_category,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/institutions/{institution_id}/event_categories", status_code=200)
async def list_event_categories(
    institution_id: str,
    client: Annotated[BookingAPIClient, Depends(get_booking_client)],
):
    institution = await fetch_institution_details(client, institution_id)
    event_categories = await fetch_event_categories(client, institution)
    return {
        "institution": institution,
        "event_categories": [
            {
                "id": ec.id,
                "name": ec.name,
                "description": ec.description,
                "subtitle": ec.subtitle,
                "photo_url": ec.photo_url,
            }
            for ec in event_categories
        ],
    }


@router.get("/event_types", status_code=200)
async def list_event_types(
    institution_id: str,
    event_category_id: int,
    client: Annotated[BookingAPIClient, Depends(get_booking_client)],
):
    institution = await fetch_institution_details(client, institution_id)
    event_category = await find_event_category(client, institution, event_category_id)
    event_types = await fetch_event_types(client, event_category)
    return {
        "institution": institution,
        "event_category": {"id": event_category.id, "name": event_category.name},
        "event_types": [
            {
                "id": et.id,
                "name": et.name,
                "description": et.description,
                "has_comment_form": bool(et.comment_form and et.comment_form.fields),
            }
            for et in event_types
        ],
    }
