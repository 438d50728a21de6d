"""
Tests for default dues synthesis and the single-member dues lookup
"""
from datetime import datetime
from decimal import Decimal

import pytest

from mymess.application.dues import DuesSource, GetMemberPendingDuesUseCase, synthesize_default
from mymess.domain.mess import MemberProfile
from mymess.infrastructure.http.fetcher import FetchExhausted


def test_mess_plan_takes_precedence_over_member_plan(make_mess):
    mess = make_mess(subscription_plan=20)
    profile = MemberProfile(email="a@mail.in", subscription_plan="Bimonthly")

    assert synthesize_default("a@mail.in", mess, profile) == Decimal("2000")


def test_member_plan_used_when_mess_has_none(make_mess):
    mess = make_mess(subscription_plan=None)
    profile = MemberProfile(email="a@mail.in", subscription_plan="Bimonthly")

    assert synthesize_default("a@mail.in", mess, profile) == Decimal("6000")


def test_zero_mess_plan_counts_as_missing(make_mess):
    mess = make_mess(subscription_plan=0)
    profile = MemberProfile(email="a@mail.in", subscription_plan=3500)

    assert synthesize_default("a@mail.in", mess, profile) == Decimal("3500")


def test_neither_plan_defaults_to_a_month(make_mess):
    mess = make_mess(subscription_plan=None, price_per_meal="80")

    assert synthesize_default("a@mail.in", mess, None) == Decimal("2400")
    assert synthesize_default("a@mail.in", mess, MemberProfile(email="a@mail.in")) == Decimal("2400")


def test_fixed_amount_mess_plan(make_mess):
    assert synthesize_default("a@mail.in", make_mess(subscription_plan=3500), None) == Decimal("3500")


def test_free_mess_synthesizes_zero(make_mess):
    assert synthesize_default("a@mail.in", make_mess(price_per_meal="0"), None) == Decimal("0")


# ── GetMemberPendingDuesUseCase ─────────────────────────────────────────────


def test_backend_figure_is_used_when_available(fake_api):
    fake_api.pending[("a@mail.in", "mess-1")] = Decimal("1200")

    dues = GetMemberPendingDuesUseCase(fake_api).execute("a@mail.in", "mess-1")

    assert dues.pending_dues == Decimal("1200")
    assert dues.source == DuesSource.BACKEND
    assert "list_member_payments" not in fake_api.calls


def test_falls_back_to_latest_payment_when_backend_fails(fake_api, make_payment):
    fake_api.failing.add("get_pending_dues")
    fake_api.payments["mess-1"] = [
        make_payment("a@mail.in", 500, 2500, datetime(2025, 1, 1)),
        make_payment("a@mail.in", 1000, 1500, datetime(2025, 2, 1)),
    ]

    dues = GetMemberPendingDuesUseCase(fake_api).execute("a@mail.in", "mess-1")

    assert dues.pending_dues == Decimal("1500")
    assert dues.source == DuesSource.FROM_LEDGER
    assert dues.is_partial is False


def test_unreadable_backend_figure_falls_back(fake_api):
    fake_api.pending[("b@mail.in", "mess-1")] = None

    dues = GetMemberPendingDuesUseCase(fake_api).execute("b@mail.in", "mess-1")

    assert dues.pending_dues == Decimal("3000")
    assert dues.source == DuesSource.SYNTHESIZED_DEFAULT


def test_profile_consulted_only_without_mess_plan(fake_api, make_mess):
    fake_api.failing.add("get_pending_dues")
    fake_api.messes["mess-1"] = make_mess(subscription_plan=None)
    fake_api.profiles["b@mail.in"] = MemberProfile(email="b@mail.in", subscription_plan="Bimonthly")

    dues = GetMemberPendingDuesUseCase(fake_api).execute("b@mail.in", "mess-1")

    assert dues.pending_dues == Decimal("6000")
    assert "profile:b@mail.in" in fake_api.calls


def test_absorbed_payment_records_flag_dues_as_partial(fake_api, make_payment):
    fake_api.payments["mess-1"] = [make_payment("a@mail.in", 500, 2500, datetime(2025, 1, 1))]
    fake_api.payment_warnings["mess-1"] = ["payment p7 had negative remaining dues"]

    dues = GetMemberPendingDuesUseCase(fake_api).execute("a@mail.in", "mess-1")

    assert dues.pending_dues == Decimal("2500")
    assert dues.is_partial is True
    assert dues.warnings == ("payment p7 had negative remaining dues",)


def test_failed_profile_lookup_flags_dues_as_partial(fake_api, make_mess):
    fake_api.messes["mess-1"] = make_mess(subscription_plan=None)
    fake_api.failing.add("profile:b@mail.in")

    dues = GetMemberPendingDuesUseCase(fake_api).execute("b@mail.in", "mess-1")

    assert dues.pending_dues == Decimal("3000")
    assert dues.is_partial is True


def test_fallback_failure_propagates(fake_api):
    fake_api.failing.update({"get_pending_dues", "get_mess"})

    with pytest.raises(FetchExhausted):
        GetMemberPendingDuesUseCase(fake_api).execute("a@mail.in", "mess-1")
