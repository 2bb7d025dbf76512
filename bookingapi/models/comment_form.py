from typing import Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

# Type tags sent by the booking API. Anything else is treated as free text.
TEXTFIELD = "textfield"
TEXTAREA = "textarea"
DATE = "date"
TIME = "time"
DURATION = "duration"
COMBO = "combo"
SELECT = "select"
CHECKBOX = "checkbox"

KNOWN_FIELD_TYPES = frozenset({TEXTFIELD, TEXTAREA, DATE, TIME, DURATION, COMBO, SELECT, CHECKBOX})


class FieldConfiguration(BaseModel):
    """Extra constraints for the more complex comment form fields."""

    model_config = ConfigDict(frozen=True)

    restriction: Optional[Literal["past", "future"]] = None
    allowed_values: Optional[Tuple[str, ...]] = None
    placeholder: Optional[str] = None
    multi_select: bool = False


class CommentFormField(BaseModel):
    """A single field of an event type's comment form.

    ``name`` is both the label shown to the patient and the key under which
    the value is sent back when booking.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    required: bool
    type: str
    config: FieldConfiguration = FieldConfiguration()

    def __repr__(self):
        parts = [f"{self.type}={self.name!r}"]
        if self.required:
            parts.append("required")
        parts.append(f"config={self.config!r}")
        return "<" + " ".join(parts) + ">"


class CommentForm(BaseModel):
    """The comment form belonging to an event type.

    Two forms with the same fields but different event types are not equal.
    """

    model_config = ConfigDict(frozen=True)

    fields: Tuple[CommentFormField, ...] = ()
    event_type_id: Union[int, str]
