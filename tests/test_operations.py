import asyncio
import datetime
import json

import httpx
import pytest

from bookingapi.client import BookingAPIClient, ResponseCache
from bookingapi.errors import (
    APIError,
    CommentFormValidationError,
    EventCategoryNotFound,
    EventTypeOrCategoryNotFound,
    EventUnavailable,
    ForbiddenWithCurrentInsuranceSettings,
    InstitutionNotFound,
)
from bookingapi.models.booking import Patient, Timeslot
from bookingapi.operations import (
    book_event,
    date_range_params,
    fetch_event_categories,
    fetch_event_dates,
    fetch_institution_category_and_type,
    fetch_institution_details,
    fetch_timeslots,
    find_event_category,
)

BASE_URL = "https://booking.test/api/booking/v3"


def make_client(handler, **kwargs):
    return BookingAPIClient(
        base_url=BASE_URL,
        client_id="client-1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def run(coro):
    return asyncio.run(coro)


def test_fetch_institution_details_sends_client_id():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"name": "Praxis Dr. Müller"})

    institution = run(fetch_institution_details(make_client(handler), "abc123"))

    assert institution.id == "abc123"
    assert institution.name == "Praxis Dr. Müller"
    assert requests[0].url.path == "/api/booking/v3/practices/abc123"
    assert requests[0].url.params["client_id"] == "client-1"


def test_fetch_institution_details_not_found():
    client = make_client(lambda request: httpx.Response(404, json={}))

    with pytest.raises(InstitutionNotFound):
        run(fetch_institution_details(client, "missing"))


def test_catalog_responses_are_cached():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"name": "Praxis"})

    client = make_client(handler)

    async def fetch_twice():
        await fetch_institution_details(client, "abc123")
        await fetch_institution_details(client, "abc123")

    run(fetch_twice())

    assert len(calls) == 1


def test_failed_responses_are_not_cached():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    client = make_client(handler)

    async def fetch_twice():
        for _ in range(2):
            with pytest.raises(APIError):
                await fetch_institution_details(client, "abc123")

    run(fetch_twice())

    assert len(calls) == 2


def test_expired_cache_entries_are_refetched():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"name": "Praxis"})

    now = [0.0]
    client = make_client(handler)
    client.cache = ResponseCache(ttl=60, timer=lambda: now[0])

    async def calls_after_fetch_at(*times):
        counts = []
        for moment in times:
            now[0] = moment
            await fetch_institution_details(client, "abc123")
            counts.append(len(calls))
        return counts

    assert run(calls_after_fetch_at(0.0, 59.0, 61.0)) == [1, 1, 2]


def test_timeout_becomes_api_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(APIError, match="Connection timed out"):
        run(fetch_institution_details(make_client(handler), "abc123"))


def test_fetch_event_categories(institution):
    def handler(request):
        assert request.url.params["practice_id"] == "abc123"
        return httpx.Response(
            200,
            json={
                "data": [
                    {
                        "id": 7,
                        "name": "Vaccinations",
                        "description": "Shots",
                        "subtitle": None,
                        "photo_url": "https://example.test/7.png",
                    }
                ]
            },
        )

    categories = run(fetch_event_categories(make_client(handler), institution))

    assert [(c.id, c.name, c.institution) for c in categories] == [(7, "Vaccinations", institution)]


def test_find_event_category_not_found(institution):
    client = make_client(lambda request: httpx.Response(200, json={"data": []}))

    with pytest.raises(EventCategoryNotFound):
        run(find_event_category(client, institution, "7"))


def catalog_handler(request):
    path = request.url.path.removeprefix("/api/booking/v3/")
    if path == "practices/abc123":
        return httpx.Response(200, json={"name": "Praxis"})
    if path == "event_categories":
        return httpx.Response(200, json={"data": [{"id": 7, "name": "Vaccinations"}]})
    if path == "event_types":
        return httpx.Response(
            200,
            json={
                "data": [
                    {
                        "id": 42,
                        "name": "Flu shot",
                        "description": None,
                        "comment_form": [{"name": "Weight", "required": True, "type": "textfield"}],
                    }
                ]
            },
        )
    return httpx.Response(404)


def test_fetch_institution_category_and_type():
    institution, category, event_type = run(
        fetch_institution_category_and_type(make_client(catalog_handler), "abc123", "7", "42")
    )

    assert institution.name == "Praxis"
    assert category.id == 7
    assert event_type.id == 42
    assert event_type.comment_form.fields[0].name == "Weight"


def test_fetch_institution_category_and_type_unknown_type():
    with pytest.raises(EventTypeOrCategoryNotFound):
        run(fetch_institution_category_and_type(make_client(catalog_handler), "abc123", 7, 99))


@pytest.mark.parametrize(
    "range_, params",
    [
        ("current", {}),
        ("find_available", {"from": "2024-08-15", "to": "2025-01-01"}),
        (datetime.date(2024, 3, 1), {"date": "2024-03-01"}),
        (
            (datetime.date(2024, 3, 1), datetime.date(2024, 4, 30)),
            {"from": "2024-03-01", "to": "2024-04-30"},
        ),
    ],
)
def test_date_range_params(range_, params):
    assert date_range_params(range_, reference_date=datetime.date(2024, 8, 15)) == params


def test_fetch_event_dates(event_type):
    def handler(request):
        assert request.url.params["event_type_id"] == "42"
        assert request.url.params["event_category_id"] == "7"
        assert request.url.params["date"] == "2024-03-01"
        return httpx.Response(
            200,
            json={"data": [{"date": "2024-03-01", "available": False}, {"date": "2024-03-02", "available": True}]},
        )

    dates = run(fetch_event_dates(make_client(handler), event_type, range_=datetime.date(2024, 3, 1)))

    assert [(d.date, d.available) for d in dates] == [
        (datetime.date(2024, 3, 1), False),
        (datetime.date(2024, 3, 2), True),
    ]


@pytest.mark.parametrize(
    "status, error",
    [(403, ForbiddenWithCurrentInsuranceSettings), (404, EventTypeOrCategoryNotFound), (500, APIError)],
)
def test_fetch_event_dates_errors(event_type, status, error):
    client = make_client(lambda request: httpx.Response(status))

    with pytest.raises(error):
        run(fetch_event_dates(client, event_type))


def test_availability_is_not_cached(event_type):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"data": []})

    client = make_client(handler)

    async def fetch_twice():
        await fetch_timeslots(client, event_type)
        await fetch_timeslots(client, event_type)

    run(fetch_twice())

    assert len(calls) == 2
    assert "date" not in calls[0].url.params


def test_fetch_timeslots_for_range(event_type):
    def handler(request):
        assert request.url.params["from"] == "2024-03-01"
        assert request.url.params["to"] == "2024-03-07"
        return httpx.Response(200, json={"data": [{"time": "2024-03-01T09:00:00+01:00", "token": "t1"}]})

    timeslots = run(
        fetch_timeslots(
            make_client(handler),
            event_type,
            from_date=datetime.date(2024, 3, 1),
            to_date=datetime.date(2024, 3, 7),
        )
    )

    assert timeslots[0].token == "t1"
    assert timeslots[0].time.hour == 9


@pytest.fixture()
def timeslot(event_type):
    return Timeslot(
        institution=event_type.institution,
        event_category=event_type.event_category,
        event_type=event_type,
        time="2024-03-01T09:00:00+01:00",
        token="t1",
    )


def test_book_event_sends_structured_comment(timeslot):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"data": {"id": 1001}})

    confirmation = run(
        book_event(
            make_client(handler),
            Patient(access_token="patient-token"),
            timeslot,
            structured_comment={"Day": datetime.date(2024, 3, 1), "Note": None},
        )
    )

    assert confirmation.id == 1001
    request = requests[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer patient-token"
    body = json.loads(request.content)
    assert body == {
        "event_category_id": 7,
        "event_type_id": 42,
        "starts_at": "2024-03-01T09:00:00+01:00",
        "token": "t1",
        "structured_comment": {"Day": "2024-03-01", "Note": None},
    }
    assert list(body["structured_comment"]) == ["Day", "Note"]


def test_book_event_without_comment(timeslot):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"data": {"id": 1}})

    run(book_event(make_client(handler), Patient(access_token="p"), timeslot))

    assert "structured_comment" not in json.loads(requests[0].content)


@pytest.mark.parametrize(
    "status, body, error, message",
    [
        (400, {"error": "The event is unavailable."}, EventUnavailable, "unavailable"),
        (400, {"error": "attendant_blocked", "overridable": False}, APIError, "Overridable: False"),
        (400, {"reason": "Something else"}, APIError, "Something else"),
        (400, {}, APIError, "Unknown 400 error"),
        (403, {}, ForbiddenWithCurrentInsuranceSettings, ""),
        (404, {}, EventTypeOrCategoryNotFound, ""),
        (422, {"reason": "invalid"}, APIError, "Unknown 422 error"),
        (503, {}, APIError, "Received status 503"),
    ],
)
def test_book_event_errors(timeslot, status, body, error, message):
    client = make_client(lambda request: httpx.Response(status, json=body))

    with pytest.raises(error, match=message):
        run(book_event(client, Patient(access_token="p"), timeslot))


def test_book_event_comment_form_rejected(timeslot):
    body = {"reason": "Structured comment is invalid", "invalid_fields": {"Weight": "is required"}}
    client = make_client(lambda request: httpx.Response(422, json=body))

    with pytest.raises(CommentFormValidationError) as excinfo:
        run(book_event(client, Patient(access_token="p"), timeslot))

    assert excinfo.value.errors == {"Weight": "is required"}
