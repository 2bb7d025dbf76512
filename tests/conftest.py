import os

# config is read at import time
os.environ["ENV_STATE"] = "test"

import pytest

from bookingapi.forms.builder import CommentFormModelBuilder, set_model_builder
from bookingapi.models.booking import EventCategory, EventType, Institution
from bookingapi.models.comment_form import CommentForm, CommentFormField, FieldConfiguration


@pytest.fixture()
def builder():
    fresh = CommentFormModelBuilder()
    previous = set_model_builder(fresh)
    yield fresh
    set_model_builder(previous)


@pytest.fixture()
def make_field():
    def _make_field(name="Foo Bar", type="textfield", required=False, **config):
        return CommentFormField(
            name=name, type=type, required=required, config=FieldConfiguration(**config)
        )

    return _make_field


@pytest.fixture()
def make_form(make_field):
    def _make_form(*fields, event_type_id=42):
        return CommentForm(fields=fields, event_type_id=event_type_id)

    return _make_form


@pytest.fixture()
def institution():
    return Institution(id="abc123", name="Praxis Dr. Müller")


@pytest.fixture()
def event_category(institution):
    return EventCategory(id=7, institution=institution, name="Vaccinations")


@pytest.fixture()
def event_type(event_category):
    return EventType(
        id=42,
        event_category=event_category,
        institution=event_category.institution,
        name="Flu shot",
        comment_form=CommentForm(event_type_id=42),
    )
