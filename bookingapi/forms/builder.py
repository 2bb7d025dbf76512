"""Builds form models for comment forms, memoized by the form's value.

A :class:`CommentFormModel` is derived once per distinct :class:`CommentForm`
and shared by every instance created from it. Forms are compared
structurally, so two equal forms fetched in separate requests reuse one model.
"""
import logging
import threading
from typing import Dict, Mapping, Optional, Tuple

from bookingapi.forms.attribute import AttributeDescriptor
from bookingapi.forms.instance import CommentFormInstance
from bookingapi.models.comment_form import CommentForm, CommentFormField

logger = logging.getLogger(__name__)


class CommentFormModel:
    """The typed shape of one comment form. Read-only once built."""

    __slots__ = ("_form", "_attributes", "_by_key")

    def __init__(self, form: CommentForm, attributes: Tuple[AttributeDescriptor, ...]):
        self._form = form
        self._attributes = tuple(attributes)
        self._by_key: Dict[str, AttributeDescriptor] = {a.key: a for a in self._attributes}

    @property
    def form(self) -> CommentForm:
        return self._form

    @property
    def attributes(self) -> Tuple[AttributeDescriptor, ...]:
        return self._attributes

    def __repr__(self):
        keys = ", ".join(a.key for a in self.attributes)
        return f"<CommentFormModel event_type={self.form.event_type_id} [{keys}]>"

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(a.key for a in self.attributes)

    @property
    def fields_by_key(self) -> Mapping[str, CommentFormField]:
        return {key: attribute.field for key, attribute in self._by_key.items()}

    def attribute(self, key: str) -> AttributeDescriptor:
        return self._by_key[key]

    def new(self, raw_values: Optional[Mapping] = None) -> CommentFormInstance:
        return CommentFormInstance(self, raw_values)


def build_model(form: CommentForm) -> CommentFormModel:
    attributes = tuple(AttributeDescriptor.derive(field) for field in form.fields)
    return CommentFormModel(form, attributes)


class CommentFormModelBuilder:
    """Process-wide cache of comment form models.

    Models are built outside the lock and published with ``setdefault``, so a
    reader only ever sees complete models and two threads racing on the same
    form both end up with the model that was stored first.
    """

    def __init__(self):
        self._models: Dict[CommentForm, CommentFormModel] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._models)

    def __contains__(self, form: CommentForm):
        return form in self._models

    def build(self, form: CommentForm) -> CommentFormModel:
        model = self._models.get(form)
        if model is not None:
            return model

        built = build_model(form)
        with self._lock:
            model = self._models.setdefault(form, built)
        if model is built:
            logger.debug(f"Built comment form model {model!r}")
        return model

    def clear(self) -> None:
        with self._lock:
            self._models.clear()


_default_builder = CommentFormModelBuilder()


def get_model_builder() -> CommentFormModelBuilder:
    return _default_builder


def set_model_builder(builder: CommentFormModelBuilder) -> CommentFormModelBuilder:
    """Replace the process-wide builder, returning the previous one."""
    global _default_builder
    previous, _default_builder = _default_builder, builder
    return previous
