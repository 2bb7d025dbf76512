import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from bookingapi.forms.builder import CommentFormModelBuilder, get_model_builder
from bookingapi.forms.instance import FORM_LEVEL, CommentFormInstance, ValidationFailure
from bookingapi.models.booking import Timeslot
from bookingapi.models.comment_form import CommentForm


class BookingDetails(BaseModel):
    """Values needed to book a timeslot, plus the raw structured comment."""

    institution_id: str
    event_category_id: int
    event_type_id: int
    starts_at: datetime.datetime
    token: str
    comment_form: Optional[Dict[str, Any]] = None

    @classmethod
    def build_from_timeslot(cls, timeslot: Timeslot) -> "BookingDetails":
        return cls(
            institution_id=timeslot.institution.id,
            event_category_id=timeslot.event_category.id,
            event_type_id=timeslot.event_type.id,
            starts_at=timeslot.time,
            token=timeslot.token,
        )

    def validate_with(
        self,
        comment_form: CommentForm,
        builder: Optional[CommentFormModelBuilder] = None,
    ) -> Tuple[CommentFormInstance, List[ValidationFailure]]:
        builder = builder or get_model_builder()
        instance = builder.build(comment_form).new(self.comment_form)

        failures = []
        if not self.token.strip():
            failures.append(ValidationFailure("token", None, "can't be blank"))

        comment_failures = instance.validate()
        if comment_failures:
            failures.extend(comment_failures)
            failures.append(ValidationFailure(FORM_LEVEL, None, "comment form is not valid"))
        return instance, failures

