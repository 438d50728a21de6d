"""
Member dues - default dues synthesis and the single-member dues lookup

The pay-dues screen asks the backend for a member's pending dues first and
only computes the figure on the client when that endpoint is unavailable.
"""
import enum
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from mymess.application.ledger import aggregate
from mymess.domain.mess import MessConfig, MemberProfile
from mymess.domain.subscription_plan import resolve_amount
from mymess.infrastructure.http.fetcher import FetchExhausted
from mymess.infrastructure.http.mess_api import MessApiClient
from mymess.utils.money import non_negative

logger = logging.getLogger(__name__)


class DuesSource(str, enum.Enum):
    """Where a pending dues figure comes from"""
    FROM_LEDGER = "fromLedger"
    SYNTHESIZED_DEFAULT = "synthesizedDefault"
    BACKEND = "backend"


def synthesize_default(
    member: str,
    mess_config: MessConfig,
    member_profile: Optional[MemberProfile] = None,
) -> Decimal:
    """
    Default outstanding balance of a member who never paid

    The mess plan wins; the member's own plan is used only when the mess has
    none configured; with neither, one month of meals.

    Returns:
        Amount >= 0 (never raises)
    """
    price = mess_config.price_per_meal
    if mess_config.has_subscription_plan():
        plan = mess_config.subscription_plan
    elif member_profile is not None and member_profile.has_subscription_plan():
        plan = member_profile.subscription_plan
    else:
        plan = None

    amount = non_negative(resolve_amount(plan, price))
    logger.debug("Synthesized default dues for %s: %s (plan=%r, price=%s)", member, amount, plan, price)
    return amount


@dataclass(frozen=True)
class MemberDues:
    """
    Pending dues of one member; warnings list malformed input absorbed
    while computing the figure on the client
    """
    email: str
    mess_id: str
    pending_dues: Decimal
    source: DuesSource
    warnings: Tuple[str, ...] = ()

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)


class GetMemberPendingDuesUseCase:
    """
    Use case: pending dues of one member in one mess

    1. Ask GET /payment/pending/user/{email}/mess/{messId}
    2. When it is unavailable or unreadable, take the member's latest payment
    3. With no payment on record, synthesize the default dues
    """

    def __init__(self, client: MessApiClient):
        self.client = client

    def execute(self, email: str, mess_id: str) -> MemberDues:
        """
        Raises:
            FetchExhausted: the fallback reads (mess, payments) failed too
            MalformedMessConfig: the mess body does not describe a mess
        """
        try:
            pending = self.client.get_pending_dues(email, mess_id)
        except FetchExhausted:
            logger.warning("Pending dues endpoint unavailable for %s in mess %s", email, mess_id)
            pending = None

        if pending is not None:
            return MemberDues(email, mess_id, non_negative(pending), DuesSource.BACKEND)

        mess = self.client.get_mess(mess_id)
        records, payment_warnings = self.client.list_member_payments(email, mess_id)
        warnings: List[str] = list(mess.warnings)
        warnings.extend(payment_warnings)
        ledger = aggregate([r for r in records if r.member_email == email], [email])

        latest = ledger.latest_by_member.get(email)
        if latest is not None:
            return MemberDues(email, mess_id, latest.remaining_due, DuesSource.FROM_LEDGER, tuple(warnings))

        profile = None
        if not mess.has_subscription_plan():
            profile = self._load_profile(email)
            if profile is None:
                warnings.append(f"profile lookup failed for {email}")
        return MemberDues(
            email,
            mess_id,
            synthesize_default(email, mess, profile),
            DuesSource.SYNTHESIZED_DEFAULT,
            tuple(warnings),
        )

    def _load_profile(self, email: str) -> Optional[MemberProfile]:
        try:
            return self.client.get_user_profile(email)
        except FetchExhausted:
            logger.warning("Profile of %s unavailable, using mess defaults", email)
            return None
