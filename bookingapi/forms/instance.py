from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from bookingapi.forms.attribute import ValidationRule, ValueType

FORM_LEVEL = "__all__"
MULTI_SELECT_SEPARATOR = ", "

MESSAGES = {
    ValidationRule.PRESENCE: "can't be blank",
    ValidationRule.CHECKBOX_ACCEPTANCE: "must be checked or unchecked",
}


class ValidationFailure(NamedTuple):
    attribute: str
    rule: Optional[ValidationRule]
    message: str

    def as_dict(self) -> dict:
        return {
            "attribute": self.attribute,
            "rule": self.rule.value if self.rule else None,
            "message": self.message,
        }


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return not value
    return False


class CommentFormInstance:
    """Values submitted for a comment form, cast to the model's types."""

    def __init__(self, model, raw_values: Optional[Mapping[str, Any]] = None):
        self.model = model
        self._values: Dict[str, Any] = {key: None for key in model.keys}
        for key, value in (raw_values or {}).items():
            if key in self._values:
                self.set(key, value)

    def __repr__(self):
        return f"<CommentFormInstance {self._values!r}>"

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def set(self, key: str, value: Any) -> None:
        self._values[key] = self.model.attribute(key).cast(value)

    @property
    def values(self) -> Dict[str, Any]:
        return dict(self._values)

    def validate(self) -> List[ValidationFailure]:
        failures = []
        for attribute in self.model.attributes:
            value = self._values[attribute.key]
            rule = attribute.validation_rule

            if rule is ValidationRule.PRESENCE and _is_blank(value):
                failures.append(ValidationFailure(attribute.key, rule, MESSAGES[rule]))
            elif rule is ValidationRule.CHECKBOX_ACCEPTANCE and value is not True and value is not False:
                failures.append(ValidationFailure(attribute.key, rule, MESSAGES[rule]))
        return failures

    def is_valid(self) -> bool:
        return not self.validate()

    def serialize(self) -> Dict[str, Any]:
        """Structured comment keyed by the original field names, in field order.

        Every declared field is present; unset values are ``None``.
        """
        result = {}
        for attribute in self.model.attributes:
            value = self._values[attribute.key]
            if attribute.value_type is ValueType.ENUM_MULTI and value is not None:
                value = MULTI_SELECT_SEPARATOR.join(value)
            result[attribute.field.name] = value
        return result
