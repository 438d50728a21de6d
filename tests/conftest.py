"""
Pytest fixtures for testing
"""
from datetime import datetime
from decimal import Decimal

import pytest
import requests

from mymess.domain.mess import MalformedMessConfig, MessConfig, MemberProfile
from mymess.domain.payment import PaymentRecord
from mymess.infrastructure.http.fetcher import FetchExhausted, HttpRequest


def _exhausted(url: str = "http://backend.test/x") -> FetchExhausted:
    return FetchExhausted(HttpRequest("GET", url), 3, requests.ConnectionError("backend down"))


class FakeMessApi:
    """In-memory stand-in for MessApiClient"""

    def __init__(self):
        self.messes: dict[str, MessConfig] = {}
        self.payments: dict[str, list[PaymentRecord]] = {}
        self.payment_warnings: dict[str, list[str]] = {}
        self.profiles: dict[str, MemberProfile] = {}
        self.pending: dict[tuple[str, str], Decimal | None] = {}
        self.failing: set[str] = set()
        self.malformed: set[str] = set()
        self.recorded: list[dict] = []
        self.calls: list[str] = []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise _exhausted(f"http://backend.test/{name}")
        if name in self.malformed:
            raise MalformedMessConfig("Mess payload has no id")

    def get_mess(self, mess_id):
        self._call("get_mess")
        return self.messes[mess_id]

    def get_mess_by_owner(self, owner_email):
        self._call("get_mess_by_owner")
        return next(m for m in self.messes.values() if m.owner_email == owner_email)

    def load_mess(self, mess_id, owner_email=None):
        try:
            return self.get_mess(mess_id)
        except FetchExhausted:
            if not owner_email:
                raise
            return self.get_mess_by_owner(owner_email)

    def list_mess_payments(self, mess_id):
        self._call("list_mess_payments")
        return list(self.payments.get(mess_id, [])), list(self.payment_warnings.get(mess_id, []))

    def list_member_payments(self, email, mess_id):
        self._call("list_member_payments")
        records = [r for r in self.payments.get(mess_id, []) if r.member_email == email]
        return records, list(self.payment_warnings.get(mess_id, []))

    def get_pending_dues(self, email, mess_id):
        self._call("get_pending_dues")
        return self.pending.get((email, mess_id))

    def get_user_profile(self, email):
        self._call(f"profile:{email}")
        return self.profiles.get(email, MemberProfile(email=email))

    def record_payment(self, user_email, owner_email, mess_id, amount_paid, remaining_dues):
        self._call("record_payment")
        call = {
            "userEmail": user_email,
            "ownerEmail": owner_email,
            "messId": mess_id,
            "amountPaid": amount_paid,
            "remainingDues": remaining_dues,
        }
        self.recorded.append(call)
        record = _make_payment(
            user_email, amount_paid, remaining_dues, datetime(2025, 3, 1, 12, 0),
            record_id=f"new-{len(self.recorded)}", mess_id=mess_id,
        )
        self.payments.setdefault(mess_id, []).append(record)
        return record


def _make_payment(
    member_email: str,
    amount_paid,
    remaining_due,
    payment_date: datetime | None,
    record_id: str | None = None,
    mess_id: str = "mess-1",
    user_name: str | None = None,
) -> PaymentRecord:
    amount_paid = Decimal(str(amount_paid))
    remaining_due = Decimal(str(remaining_due))
    return PaymentRecord(
        id=record_id,
        member_email=member_email,
        owner_email="owner@mess.in",
        mess_id=mess_id,
        total_due=amount_paid + remaining_due,
        amount_paid=amount_paid,
        remaining_due=remaining_due,
        payment_date=payment_date,
        status="COMPLETED",
        user_name=user_name,
    )


def _make_mess(
    joined_users=("a@mail.in", "b@mail.in"),
    price_per_meal="100",
    subscription_plan=30,
    mess_id: str = "mess-1",
) -> MessConfig:
    return MessConfig(
        id=mess_id,
        name="Annapurna Mess",
        owner_email="owner@mess.in",
        price_per_meal=Decimal(price_per_meal),
        subscription_plan=subscription_plan,
        joined_users=tuple(joined_users),
    )


@pytest.fixture
def mess():
    """Mess with ₹100 per meal, 30-day plan, members A and B"""
    return _make_mess()


@pytest.fixture
def fake_api(mess):
    api = FakeMessApi()
    api.messes[mess.id] = mess
    return api


@pytest.fixture
def make_payment():
    """Factory: make_payment(email, paid, remaining, date, record_id=...)"""
    return _make_payment


@pytest.fixture
def make_mess():
    """Factory: make_mess(joined_users=..., price_per_meal=..., subscription_plan=...)"""
    return _make_mess


@pytest.fixture
def exhausted():
    """Factory for a FetchExhausted error"""
    return _exhausted
