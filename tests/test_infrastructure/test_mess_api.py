"""
Tests for MessApiClient against a mocked HTTP session
"""
import json
from decimal import Decimal
from unittest.mock import Mock

import pytest
import requests

from mymess.domain.mess import MalformedMessConfig
from mymess.infrastructure.http.fetcher import FetchExhausted, ResilientFetcher
from mymess.infrastructure.http.mess_api import MessApiClient

BASE = "http://backend.test"


def _response(body, url=BASE):
    response = Mock(spec=requests.Response)
    response.raise_for_status.return_value = None
    response.url = url
    if body is None:
        response.content = b""
    elif isinstance(body, bytes):
        response.content = body
        response.json.side_effect = json.JSONDecodeError("bad", "x", 0)
    else:
        response.content = json.dumps(body).encode()
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def client(session):
    fetcher = ResilientFetcher(session=session, max_attempts=2, initial_delay=0.01, sleep=lambda s: None)
    return MessApiClient(fetcher=fetcher, base_url=BASE + "/")


def _called_urls(session):
    return [c.args[1] for c in session.request.call_args_list]


def test_get_mess(client, session):
    session.request.return_value = _response({
        "id": "m1", "email": "owner@mess.in", "pricePerMeal": 100,
        "subscriptionPlan": 30, "joinedUsers": ["a@mail.in"],
    })

    mess = client.get_mess("m1")

    assert mess.joined_users == ("a@mail.in",)
    assert _called_urls(session) == [f"{BASE}/mess/getById/m1"]


def test_load_mess_falls_back_to_owner_email(client, session):
    session.request.side_effect = [
        requests.ConnectionError("down"),
        requests.ConnectionError("down"),
        _response({"id": "m1", "email": "owner@mess.in"}),
    ]

    mess = client.load_mess("m1", owner_email="owner@mess.in")

    assert mess.id == "m1"
    assert _called_urls(session)[-1] == f"{BASE}/mess/getByEmail/owner@mess.in"


def test_load_mess_without_owner_email_propagates(client, session):
    session.request.side_effect = requests.ConnectionError("down")

    with pytest.raises(FetchExhausted):
        client.load_mess("m1")


def test_empty_mess_body_is_malformed(client, session):
    session.request.return_value = _response(None)

    with pytest.raises(MalformedMessConfig):
        client.get_mess("m1")


def test_list_mess_payments(client, session):
    session.request.return_value = _response([
        {"id": "p1", "userEmail": "a@mail.in", "amountPaid": 500, "remainingDues": 2500,
         "paymentDate": "2025-01-01T10:00:00"},
    ])

    records, warnings = client.list_mess_payments("m1")

    assert [r.id for r in records] == ["p1"]
    assert warnings == []
    assert _called_urls(session) == [f"{BASE}/payment/mess/m1"]


def test_undecodable_payments_body_is_partial(client, session):
    session.request.return_value = _response(b"<html>oops</html>")

    records, warnings = client.list_mess_payments("m1")

    assert records == []
    assert len(warnings) == 1


def test_member_payments_url_is_encoded(client, session):
    session.request.return_value = _response([])

    client.list_member_payments("a+b@mail.in", "m 1")

    assert _called_urls(session) == [f"{BASE}/payment/user/a%2Bb@mail.in/mess/m%201"]


@pytest.mark.parametrize("body,expected", [
    ({"pendingDues": 1200.5}, Decimal("1200.5")),
    ({"pendingDues": "800"}, Decimal("800")),
    ({"pendingDues": "n/a"}, None),
    ({}, None),
    ([], None),
])
def test_get_pending_dues(client, session, body, expected):
    session.request.return_value = _response(body)

    assert client.get_pending_dues("a@mail.in", "m1") == expected


def test_record_payment_is_form_encoded_and_not_retried(client, session):
    session.request.side_effect = [requests.ConnectionError("down"), _response({})]

    with pytest.raises(FetchExhausted):
        client.record_payment("a@mail.in", "owner@mess.in", "m1", Decimal("500"), Decimal("2500"))

    assert session.request.call_count == 1
    call = session.request.call_args
    assert call.args == ("POST", f"{BASE}/payment/record")
    assert call.kwargs["data"] == {
        "userEmail": "a@mail.in",
        "ownerEmail": "owner@mess.in",
        "messId": "m1",
        "amountPaid": "500",
        "remainingDues": "2500",
    }


def test_record_payment_returns_record(client, session):
    session.request.return_value = _response({
        "id": "p9", "userEmail": "a@mail.in", "amountPaid": 500.0, "remainingDues": 2500.0,
        "totalDues": 3000.0, "paymentDate": "2025-03-01T12:00:00",
    })

    record = client.record_payment("a@mail.in", "owner@mess.in", "m1", Decimal("500"), Decimal("2500"))

    assert record.id == "p9"
    assert record.total_due == Decimal("3000.0")


def test_get_user_profile(client, session):
    session.request.return_value = _response({"name": "Asha", "subscriptionPlan": "Monthly"})

    profile = client.get_user_profile("a@mail.in")

    assert profile.email == "a@mail.in"
    assert profile.name == "Asha"
    assert _called_urls(session) == [f"{BASE}/byEmail/a@mail.in"]
