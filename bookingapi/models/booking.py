import datetime
from typing import Optional, Union

from pydantic import BaseModel

from bookingapi.models.comment_form import CommentForm


class Institution(BaseModel):
    id: str
    name: str


class EventCategory(BaseModel):
    id: int
    institution: Institution
    name: str
    description: Optional[str] = None
    subtitle: Optional[str] = None
    photo_url: Optional[str] = None


class EventType(BaseModel):
    id: int
    event_category: EventCategory
    institution: Institution
    name: str
    description: Optional[str] = None
    comment_form: Optional[CommentForm] = None


class EventDate(BaseModel):
    institution: Institution
    event_category: EventCategory
    event_type: EventType
    date: datetime.date
    available: bool


class Timeslot(BaseModel):
    institution: Institution
    event_category: EventCategory
    event_type: EventType
    time: datetime.datetime
    token: str

    def booking_params(self) -> dict:
        """Query parameters that lead to a new booking for this timeslot."""
        return {
            "institution_id": self.institution.id,
            "event_category_id": self.event_category.id,
            "event_type_id": self.event_type.id,
            "time": self.time.isoformat(),
            "token": self.token,
        }


class Patient(BaseModel):
    access_token: str


class BookingConfirmation(BaseModel):
    id: Union[int, str]
