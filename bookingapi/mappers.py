"""Maps booking API payloads into entities.

The comment form schema comes straight from the API and is treated as
untrusted: anything structurally broken raises :class:`SchemaError`.
"""
import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from bookingapi.forms.attribute import slugify
from bookingapi.models.booking import EventCategory, EventType
from bookingapi.models.comment_form import (
    KNOWN_FIELD_TYPES,
    CommentForm,
    CommentFormField,
    FieldConfiguration,
)

logger = logging.getLogger(__name__)

MULTI_SELECT_ON = "on"
REQUIRED_FIELD_KEYS = ("name", "required", "type")
RESTRICTIONS = ("past", "future")


class SchemaError(ValueError):
    """The comment form schema returned by the API is malformed."""


def _split_values(values: str) -> Tuple[str, ...]:
    """One option per line. Trailing blank lines are not options."""
    options = values.split("\n")
    while options and options[-1] == "":
        options.pop()
    return tuple(options)


def parse_config(raw: Optional[Mapping[str, Any]]) -> FieldConfiguration:
    raw = raw or {}
    if not isinstance(raw, Mapping):
        raise SchemaError(f"Field config must be a mapping, got {type(raw).__name__}")

    values = raw.get("values")
    if values is not None:
        values = _split_values(str(values))

    restriction = raw.get("restriction")
    if restriction not in RESTRICTIONS:
        restriction = None

    try:
        return FieldConfiguration(
            restriction=restriction,
            allowed_values=values,
            placeholder=raw.get("emptyText"),
            multi_select=raw.get("multi") == MULTI_SELECT_ON,
        )
    except ValidationError as e:
        raise SchemaError(f"Invalid field config: {e}") from e


def parse_field(raw: Mapping[str, Any]) -> CommentFormField:
    if not isinstance(raw, Mapping):
        raise SchemaError(f"Field must be a mapping, got {type(raw).__name__}")

    missing = [key for key in REQUIRED_FIELD_KEYS if key not in raw]
    if missing:
        raise SchemaError(f"Field is missing required keys: {', '.join(missing)}")

    if isinstance(raw["type"], str) and raw["type"] not in KNOWN_FIELD_TYPES:
        logger.warning(f"Unknown field type {raw['type']!r}, treating it as text")

    try:
        return CommentFormField(
            name=raw["name"],
            required=raw["required"],
            type=raw["type"],
            config=parse_config(raw.get("config")),
        )
    except ValidationError as e:
        raise SchemaError(f"Invalid field {raw.get('name')!r}: {e}") from e


def parse_form(raw_list: Optional[Iterable[Mapping[str, Any]]], event_type_id: Union[int, str]) -> CommentForm:
    """Parse the comment form of an event type.

    A missing schema means the event type does not ask for a structured
    comment, so ``None`` gives an empty form.
    """
    fields = tuple(parse_field(raw) for raw in (raw_list or []))

    seen = {}
    for field in fields:
        key = slugify(field.name)
        if key in seen:
            raise SchemaError(
                f"Fields {seen[key]!r} and {field.name!r} of event type {event_type_id} "
                f"both map to attribute {key!r}"
            )
        seen[key] = field.name

    return CommentForm(fields=fields, event_type_id=event_type_id)


def map_event_type(raw: Mapping[str, Any], event_category: EventCategory) -> EventType:
    event_type_id = raw["id"]
    return EventType(
        id=event_type_id,
        event_category=event_category,
        institution=event_category.institution,
        name=raw["name"],
        description=raw.get("description"),
        comment_form=parse_form(raw.get("comment_form"), event_type_id=event_type_id),
    )


def map_event_types(raw_list: Iterable[Mapping[str, Any]], event_category: EventCategory) -> List[EventType]:
    event_types = [map_event_type(raw, event_category) for raw in raw_list]
    logger.debug(f"Mapped {len(event_types)} event types for category {event_category.id}")
    return event_types
