"""
Payment use cases - paying dues, the initial payment on joining, and the
mess payment feed
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple, Union

from mymess.application.dues import GetMemberPendingDuesUseCase, synthesize_default
from mymess.application.financial_summary import UNKNOWN_MEMBER_NAME
from mymess.application.ledger import recency_key
from mymess.application.profiles import fetch_member_profiles
from mymess.application.reconciliation import UpstreamUnavailable
from mymess.config import get_settings
from mymess.domain.mess import MemberProfile
from mymess.domain.payment import PaymentRecord
from mymess.infrastructure.http.fetcher import FetchExhausted
from mymess.infrastructure.http.mess_api import MessApiClient
from mymess.utils.money import ZERO, non_negative
from mymess.utils.validation import validate_and_normalize_amount

logger = logging.getLogger(__name__)

FEED_FILTERS = ("all", "payment", "due")


class PaymentValidationError(ValueError):
    """Payment request rejected before reaching the backend"""
    pass


@dataclass(frozen=True)
class PaymentOutcome:
    record: PaymentRecord
    previous_dues: Decimal
    remaining_dues: Decimal


def parse_payment_amount(amount: Union[str, int, Decimal]) -> Decimal:
    """
    Amount typed by the member: positive, at most two decimal places

    Raises:
        PaymentValidationError
    """
    try:
        value = Decimal(validate_and_normalize_amount(str(amount)))
    except ValueError as exc:
        raise PaymentValidationError(str(exc)) from exc
    if value <= ZERO:
        raise PaymentValidationError("Please enter a valid amount")
    return value


class RecordDuesPaymentUseCase:
    """
    Use case: member pays (part of) their pending dues

    1. Validate the amount
    2. Look up current pending dues (backend first, client fallback)
    3. Reject payments above the dues
    4. POST /payment/record with remaining = max(0, dues - amount)
    """

    def __init__(self, client: MessApiClient):
        self.client = client

    def execute(
        self,
        user_email: str,
        mess_id: str,
        amount: Union[str, int, Decimal],
        owner_email: Optional[str] = None,
    ) -> PaymentOutcome:
        """
        Raises:
            PaymentValidationError: bad amount, amount above dues, unknown owner
            FetchExhausted: backend unavailable
        """
        paid = parse_payment_amount(amount)
        dues = GetMemberPendingDuesUseCase(self.client).execute(user_email, mess_id).pending_dues

        if paid > dues:
            raise PaymentValidationError(f"Payment amount cannot exceed total dues ({dues})")

        if not owner_email:
            owner_email = self.client.get_mess(mess_id).owner_email
        if not owner_email:
            raise PaymentValidationError("Mess owner is unknown")

        remaining = non_negative(dues - paid)
        record = self.client.record_payment(user_email, owner_email, mess_id, paid, remaining)
        logger.info(
            "Recorded payment of %s by %s in mess %s, remaining dues %s",
            paid, user_email, mess_id, remaining,
        )
        return PaymentOutcome(record=record, previous_dues=dues, remaining_dues=remaining)


class RecordJoinPaymentUseCase:
    """
    Use case: initial payment right after a member joins a mess

    The subscription total is resolved the same way as default dues, with
    the plan the member picked while joining as the fallback descriptor.
    """

    def __init__(self, client: MessApiClient):
        self.client = client

    def execute(
        self,
        user_email: str,
        mess_id: str,
        selected_plan: Optional[str] = None,
        owner_email: Optional[str] = None,
        initial_payment: Optional[Union[str, Decimal]] = None,
    ) -> PaymentOutcome:
        """
        Raises:
            PaymentValidationError: nothing to pay, or owner unknown
            FetchExhausted: backend unavailable
        """
        if initial_payment is None:
            initial_payment = get_settings().JOIN_INITIAL_PAYMENT
        requested = parse_payment_amount(initial_payment)

        mess = self.client.load_mess(mess_id, owner_email)
        profile = MemberProfile(email=user_email, subscription_plan=selected_plan)
        total = synthesize_default(user_email, mess, profile)
        if total <= ZERO:
            raise PaymentValidationError("Subscription amount is zero, nothing to pay")

        owner = owner_email or mess.owner_email
        if not owner:
            raise PaymentValidationError("Mess owner is unknown")

        paid = min(requested, total)
        remaining = total - paid
        record = self.client.record_payment(user_email, owner, mess.id, paid, remaining)
        logger.info("Join payment of %s by %s in mess %s (total %s)", paid, user_email, mess.id, total)
        return PaymentOutcome(record=record, previous_dues=total, remaining_dues=remaining)


# ── Payment feed ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PaymentFeedItem:
    record: PaymentRecord
    user_name: str


@dataclass(frozen=True)
class PaymentFeed:
    """
    Feed items newest first; warnings list skipped or clamped records and
    failed name lookups
    """
    items: Tuple[PaymentFeedItem, ...]
    warnings: Tuple[str, ...] = ()

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)


class BuildPaymentFeedUseCase:
    """
    Use case: transaction list of the finance screen, newest first, with
    member names resolved concurrently
    """

    def __init__(self, client: MessApiClient, max_workers: Optional[int] = None):
        self.client = client
        self.max_workers = max_workers

    def execute(self, mess_id: str) -> PaymentFeed:
        """
        Raises:
            UpstreamUnavailable: payment list unavailable
        """
        try:
            records, payment_warnings = self.client.list_mess_payments(mess_id)
        except FetchExhausted as exc:
            raise UpstreamUnavailable("payment list", mess_id, exc) from exc

        unnamed = [r.member_email for r in records if not r.user_name]
        profiles, failed = fetch_member_profiles(self.client, unnamed, self.max_workers)

        items = []
        for record in records:
            name = record.user_name
            if not name:
                profile = profiles.get(record.member_email)
                name = profile.name if profile is not None and profile.name else UNKNOWN_MEMBER_NAME
            items.append(PaymentFeedItem(record=record, user_name=name))

        items.sort(key=lambda item: recency_key(item.record), reverse=True)

        warnings = list(payment_warnings)
        warnings.extend(f"profile lookup failed for {email}" for email in failed)
        return PaymentFeed(items=tuple(items), warnings=tuple(warnings))


def filter_payment_feed(
    items: Iterable[PaymentFeedItem],
    search: str = "",
    kind: str = "all",
) -> List[PaymentFeedItem]:
    """
    search matches member name or email (case-insensitive); kind is
    all / payment (money received) / due (balance left)

    Raises:
        ValueError: unknown kind
    """
    if kind not in FEED_FILTERS:
        raise ValueError(f"Unknown payment filter: {kind}")

    needle = search.strip().lower()
    result = []
    for item in items:
        if needle and needle not in item.user_name.lower() and needle not in item.record.member_email.lower():
            continue
        if kind == "payment" and item.record.amount_paid <= ZERO:
            continue
        if kind == "due" and item.record.remaining_due <= ZERO:
            continue
        result.append(item)
    return result
