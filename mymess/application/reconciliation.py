"""
Reconciliation pass - fetch roster and payments, then aggregate and summarize

A pass always runs in this order:
  1. mess config with the joined-member roster
  2. payment records of the mess
     (member profiles are fanned out concurrently here)
  3. ledger aggregation
  4. default dues synthesis
  5. summary build

Steps 3-5 are a pure function of one ReconciliationInput snapshot. A newer
pass for the same mess supersedes an older one: the older one's result is
discarded instead of being merged.
"""
import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from mymess.application import financial_summary, ledger
from mymess.application.financial_summary import FinancialSummary, MemberDuesView
from mymess.application.profiles import fetch_member_profiles
from mymess.domain.mess import MalformedMessConfig, MessConfig, MemberProfile
from mymess.domain.payment import PaymentRecord
from mymess.infrastructure.http.fetcher import FetchExhausted
from mymess.infrastructure.http.mess_api import MessApiClient

logger = logging.getLogger(__name__)


class UpstreamUnavailable(Exception):
    """Roster or payment list could not be fetched; the pass produced nothing"""

    def __init__(self, what: str, mess_id: str, cause: Exception):
        self.what = what
        self.mess_id = mess_id
        self.cause = cause
        super().__init__(f"{what} of mess {mess_id} unavailable: {cause}")


class ReconciliationSuperseded(Exception):
    """A newer pass for the same mess started before this one finished"""

    def __init__(self, mess_id: str, pass_id: int, latest_pass_id: int):
        self.mess_id = mess_id
        self.pass_id = pass_id
        self.latest_pass_id = latest_pass_id
        super().__init__(f"Pass {pass_id} of mess {mess_id} superseded by pass {latest_pass_id}")


@dataclass(frozen=True)
class ReconciliationInput:
    """Everything a pass computes from, fetched before any aggregation"""
    pass_id: int
    mess: MessConfig
    payments: Tuple[PaymentRecord, ...]
    profiles: Mapping[str, MemberProfile]
    inactive_members: FrozenSet[str] = frozenset()
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ReconciliationResult:
    pass_id: int
    mess_id: str
    summary: FinancialSummary
    members: Tuple[MemberDuesView, ...]


def reconcile(snapshot: ReconciliationInput) -> ReconciliationResult:
    """Aggregate, synthesize and summarize one snapshot (no I/O)"""
    roster = snapshot.mess.joined_users
    aggregate = ledger.aggregate(snapshot.payments, roster)
    summary, views = financial_summary.build(
        roster,
        aggregate,
        snapshot.mess,
        snapshot.profiles,
        inactive_members=snapshot.inactive_members,
        warnings=snapshot.warnings,
    )
    return ReconciliationResult(
        pass_id=snapshot.pass_id,
        mess_id=snapshot.mess.id,
        summary=summary,
        members=tuple(views),
    )


class ReconciliationCoordinator:
    """
    Hands out pass ids and tells whether a pass is still the latest one
    started for its mess. Shared between requests, guarded by a lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self._latest: Dict[str, int] = {}

    def begin(self, mess_id: str) -> int:
        with self._lock:
            pass_id = next(self._counter)
            self._latest[mess_id] = pass_id
            return pass_id

    def latest(self, mess_id: str) -> Optional[int]:
        with self._lock:
            return self._latest.get(mess_id)

    def ensure_current(self, mess_id: str, pass_id: int) -> None:
        """
        Raises:
            ReconciliationSuperseded: a newer pass was started for mess_id
        """
        latest = self.latest(mess_id)
        if latest is not None and latest != pass_id:
            logger.info("Discarding pass %d of mess %s, pass %d is newer", pass_id, mess_id, latest)
            raise ReconciliationSuperseded(mess_id, pass_id, latest)


class ReconcileMessUseCase:
    """
    Use case: one reconciliation pass for a mess

    Loss of the roster or the payment list aborts the pass with
    UpstreamUnavailable; shape problems and failed profile lookups are
    absorbed and mark the summary as partial.
    """

    def __init__(
        self,
        client: MessApiClient,
        coordinator: Optional[ReconciliationCoordinator] = None,
        max_workers: Optional[int] = None,
    ):
        self.client = client
        self.coordinator = coordinator or ReconciliationCoordinator()
        self.max_workers = max_workers

    def execute(
        self,
        mess_id: str,
        owner_email: Optional[str] = None,
        inactive_members: Iterable[str] = (),
    ) -> ReconciliationResult:
        """
        Args:
            mess_id: mess to reconcile
            owner_email: used to look the mess up when the id lookup fails
            inactive_members: members on leave (external signal)

        Raises:
            UpstreamUnavailable: roster or payment list unavailable
            ReconciliationSuperseded: a newer pass for this mess was started
        """
        pass_id = self.coordinator.begin(mess_id)
        snapshot = self._fetch_input(pass_id, mess_id, owner_email, frozenset(inactive_members))

        self.coordinator.ensure_current(mess_id, pass_id)
        result = reconcile(snapshot)
        self.coordinator.ensure_current(mess_id, pass_id)

        logger.info(
            "Pass %d of mess %s: collected=%s pending=%s members=%d partial=%s",
            pass_id, mess_id, result.summary.total_collected, result.summary.pending_dues,
            result.summary.total_members, result.summary.is_partial,
        )
        return result

    def _fetch_input(
        self,
        pass_id: int,
        mess_id: str,
        owner_email: Optional[str],
        inactive_members: FrozenSet[str],
    ) -> ReconciliationInput:
        try:
            mess = self.client.load_mess(mess_id, owner_email)
        except (FetchExhausted, MalformedMessConfig) as exc:
            raise UpstreamUnavailable("member roster", mess_id, exc) from exc

        try:
            payments, payment_warnings = self.client.list_mess_payments(mess.id)
        except FetchExhausted as exc:
            raise UpstreamUnavailable("payment list", mess_id, exc) from exc

        profiles, failed = fetch_member_profiles(self.client, mess.joined_users, self.max_workers)

        warnings: List[str] = list(mess.warnings)
        warnings.extend(payment_warnings)
        warnings.extend(f"profile lookup failed for {email}" for email in failed)

        return ReconciliationInput(
            pass_id=pass_id,
            mess=mess,
            payments=tuple(payments),
            profiles=profiles,
            inactive_members=inactive_members,
            warnings=tuple(warnings),
        )
