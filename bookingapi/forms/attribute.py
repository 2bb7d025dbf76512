"""Per-field attribute rules for the comment form engine.

Every :class:`CommentFormField` is turned into an :class:`AttributeDescriptor`
that knows the attribute key, how submitted values are cast, and which
validation applies. Casting never raises: a value that does not fit its type
is left unset (``None``) and reported by validation like a missing value.
"""
import datetime
import enum
import re
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from bookingapi.models.comment_form import (
    CHECKBOX,
    COMBO,
    DATE,
    DURATION,
    SELECT,
    TIME,
    CommentFormField,
)

_NON_ALNUM_RUN = re.compile(r"[\W_]+")

FALSE_VALUES = frozenset({False, 0, "0", "f", "F", "false", "FALSE", "off", "OFF"})
DATE_FORMATS = ("%d.%m.%Y", "%d/%m/%Y")
_CLOCK_TIME = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?")


class ValueType(str, enum.Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    ENUM_SINGLE = "enum_single"
    ENUM_MULTI = "enum_multi"


class ValidationRule(str, enum.Enum):
    NONE = "none"
    PRESENCE = "presence"
    CHECKBOX_ACCEPTANCE = "checkbox_acceptance"


def slugify(name: str) -> str:
    """Lower-case ``name`` and collapse every run of non-alphanumerics into ``_``.

    >>> slugify("Foo Bar Bäß")
    'foo_bar_bäß'
    """
    return _NON_ALNUM_RUN.sub("_", name.lower())


def _value_type(field: CommentFormField) -> ValueType:
    if field.type == CHECKBOX:
        return ValueType.BOOLEAN
    if field.type == DATE:
        return ValueType.DATE
    if field.type in (TIME, DURATION):
        return ValueType.TIME
    if field.type in (COMBO, SELECT):
        return ValueType.ENUM_MULTI if field.config.multi_select else ValueType.ENUM_SINGLE
    return ValueType.STRING


def _validation_rule(field: CommentFormField) -> ValidationRule:
    if not field.required:
        return ValidationRule.NONE
    if field.type == CHECKBOX:
        return ValidationRule.CHECKBOX_ACCEPTANCE
    return ValidationRule.PRESENCE


def _cast_string(value):
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "t" if value else "f"
    if isinstance(value, (list, tuple, dict)):
        return None
    return str(value)


def _cast_boolean(value):
    if value == "":
        return None
    if isinstance(value, (str, int, float)):
        return value not in FALSE_VALUES
    return True


def _cast_date(value):
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            pass
        for date_format in DATE_FORMATS:
            try:
                return datetime.datetime.strptime(value.strip(), date_format).date()
            except ValueError:
                continue
    return None


def _cast_time(value):
    if isinstance(value, datetime.datetime):
        return value.time()
    if isinstance(value, datetime.time):
        return value
    if isinstance(value, str):
        try:
            return datetime.time.fromisoformat(value.strip())
        except ValueError:
            pass
        match = _CLOCK_TIME.fullmatch(value.strip())
        if match:
            hour, minute, second = match.groups()
            try:
                return datetime.time(int(hour), int(minute), int(second or 0))
            except ValueError:
                return None
    return None


class AttributeDescriptor(BaseModel):
    """How one comment form field behaves as a typed form attribute."""

    model_config = ConfigDict(frozen=True)

    key: str
    value_type: ValueType
    validation_rule: ValidationRule
    field: CommentFormField
    allowed_values: Tuple[str, ...] = ()

    @classmethod
    def derive(cls, field: CommentFormField) -> "AttributeDescriptor":
        return cls(
            key=slugify(field.name),
            value_type=_value_type(field),
            validation_rule=_validation_rule(field),
            field=field,
            allowed_values=field.config.allowed_values or (),
        )

    @property
    def label(self) -> str:
        return self.field.name

    @property
    def required(self) -> bool:
        return self.validation_rule is not ValidationRule.NONE

    @property
    def placeholder(self) -> Optional[str]:
        return self.field.config.placeholder

    @property
    def restriction(self) -> Optional[str]:
        return self.field.config.restriction

    def cast(self, value: Any) -> Any:
        """Cast a submitted value, returning ``None`` when it does not fit."""
        if value is None:
            return None
        if self.value_type is ValueType.BOOLEAN:
            return _cast_boolean(value)
        if self.value_type is ValueType.DATE:
            return _cast_date(value)
        if self.value_type is ValueType.TIME:
            return _cast_time(value)
        if self.value_type is ValueType.ENUM_SINGLE:
            if isinstance(value, str) and value in self.allowed_values:
                return value
            return None
        if self.value_type is ValueType.ENUM_MULTI:
            return self._cast_multi(value)
        return _cast_string(value)

    def _cast_multi(self, value) -> List[str]:
        if isinstance(value, str):
            submitted = {value}
        elif isinstance(value, (list, tuple, set, frozenset)):
            submitted = set(v for v in value if isinstance(v, str))
        else:
            submitted = set()
        return [v for v in self.allowed_values if v in submitted]

    def hints(self) -> dict:
        """Rendering hints for the presentation layer."""
        return {
            "key": self.key,
            "label": self.label,
            "value_type": self.value_type.value,
            "required": self.required,
            "allowed_values": list(self.allowed_values),
            "placeholder": self.placeholder,
            "restriction": self.restriction,
        }
