"""
Financial summary builder - mess-wide totals and per-member dues views

Everything is recomputed from the ledger aggregate on every pass; nothing is
patched incrementally.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from mymess.application.dues import DuesSource, synthesize_default
from mymess.application.ledger import LedgerAggregate
from mymess.domain.mess import MessConfig, MemberProfile
from mymess.utils.money import ZERO

MEMBER_STATUS_ACTIVE = "active"
MEMBER_STATUS_LEAVE = "leave"

MEMBER_FILTERS = ("all", "active", "leave", "dues")

DEFAULT_PLAN_LABEL = "Monthly"
UNKNOWN_MEMBER_NAME = "Unknown User"


@dataclass(frozen=True)
class FinancialSummary:
    """
    Mess-level totals

    is_partial is set when malformed input was absorbed while building the
    pass; the figures are then a lower bound, not a confirmed zero.
    """
    total_collected: Decimal
    pending_dues: Decimal
    total_members: int
    active_members: int
    is_partial: bool = False
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MemberDuesView:
    """One row of the member list / finance screen"""
    email: str
    name: str
    plan: str
    pending_dues: Decimal
    source: DuesSource
    status: str = MEMBER_STATUS_ACTIVE
    attendance: Optional[int] = None  # supplied by the attendance service, not computed here

    @property
    def has_dues(self) -> bool:
        return self.pending_dues > ZERO


def build(
    joined_members: Iterable[str],
    ledger: LedgerAggregate,
    mess_config: MessConfig,
    member_profiles: Mapping[str, MemberProfile],
    inactive_members: Iterable[str] = (),
    warnings: Iterable[str] = (),
) -> Tuple[FinancialSummary, List[MemberDuesView]]:
    """
    Compose the summary and the member views

    Pending dues are the remaining dues of every member's latest payment
    (former members included, they still owe it) plus a synthesized default
    for each joined member with no payment at all. Member views cover joined
    members only, in roster order.

    Args:
        joined_members: roster of the mess
        ledger: result of ledger.aggregate over the same payments and roster;
            its unpaid_members get synthesized default dues
        mess_config: price and plan of the mess
        member_profiles: profiles by email (missing entries allowed)
        inactive_members: members on leave; they stay in total_members
        warnings: malformed-input markers collected while fetching

    Returns:
        (FinancialSummary, [MemberDuesView])

    Raises:
        ValueError: a roster member is neither in the ledger nor unpaid
    """
    roster = list(dict.fromkeys(joined_members))
    inactive = frozenset(inactive_members)

    synthesized: Dict[str, Decimal] = {
        email: synthesize_default(email, mess_config, member_profiles.get(email))
        for email in ledger.unpaid_members
    }

    views: List[MemberDuesView] = []
    for email in roster:
        profile = member_profiles.get(email)
        latest = ledger.latest_by_member.get(email)
        if latest is not None:
            pending, source = latest.remaining_due, DuesSource.FROM_LEDGER
        elif email in synthesized:
            pending, source = synthesized[email], DuesSource.SYNTHESIZED_DEFAULT
        else:
            raise ValueError(f"Ledger was aggregated over a different roster: {email} missing")

        views.append(MemberDuesView(
            email=email,
            name=_display_name(profile, latest.user_name if latest else None),
            plan=_plan_label(profile),
            pending_dues=pending,
            source=source,
            status=MEMBER_STATUS_LEAVE if email in inactive else MEMBER_STATUS_ACTIVE,
        ))

    ledger_dues = sum((r.remaining_due for r in ledger.latest_by_member.values()), ZERO)
    synthesized_dues = sum(synthesized.values(), ZERO)

    warnings = tuple(warnings)
    summary = FinancialSummary(
        total_collected=ledger.total_collected,
        pending_dues=ledger_dues + synthesized_dues,
        total_members=len(roster),
        active_members=len(roster) - len(inactive.intersection(roster)),
        is_partial=bool(warnings),
        warnings=warnings,
    )
    return summary, views


def filter_member_views(
    views: Iterable[MemberDuesView],
    search: str = "",
    status_filter: str = "all",
) -> List[MemberDuesView]:
    """
    Member list filter: search matches name or email (case-insensitive);
    status_filter is one of all / active / leave / dues.

    Raises:
        ValueError: unknown status_filter
    """
    if status_filter not in MEMBER_FILTERS:
        raise ValueError(f"Unknown member filter: {status_filter}")

    needle = search.strip().lower()
    result = []
    for view in views:
        if needle and needle not in view.name.lower() and needle not in view.email.lower():
            continue
        if status_filter == "dues" and not view.has_dues:
            continue
        if status_filter in (MEMBER_STATUS_ACTIVE, MEMBER_STATUS_LEAVE) and view.status != status_filter:
            continue
        result.append(view)
    return result


def _display_name(profile: Optional[MemberProfile], ledger_name: Optional[str]) -> str:
    if profile is not None and profile.name:
        return profile.name
    if ledger_name:
        return ledger_name
    return UNKNOWN_MEMBER_NAME


def _plan_label(profile: Optional[MemberProfile]) -> str:
    if profile is not None and profile.has_subscription_plan():
        return str(profile.subscription_plan).strip()
    return DEFAULT_PLAN_LABEL
