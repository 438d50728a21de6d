"""
Finance API endpoints - what the owner finance, member list and pay-dues
screens read and write
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator

from mymess.api.deps import get_coordinator, get_mess_api
from mymess.application.dues import GetMemberPendingDuesUseCase
from mymess.application.financial_summary import (
    FinancialSummary, MemberDuesView, filter_member_views,
)
from mymess.application.payments import (
    BuildPaymentFeedUseCase, PaymentFeedItem, PaymentOutcome, PaymentValidationError,
    RecordDuesPaymentUseCase, RecordJoinPaymentUseCase, filter_payment_feed,
)
from mymess.application.reconciliation import (
    ReconcileMessUseCase, ReconciliationCoordinator, ReconciliationSuperseded, UpstreamUnavailable,
)
from mymess.config import get_settings
from mymess.domain.mess import MalformedMessConfig
from mymess.domain.payment import MalformedPaymentRecord
from mymess.infrastructure.http.fetcher import FetchExhausted
from mymess.infrastructure.http.mess_api import MessApiClient
from mymess.utils.money import format_money
from mymess.utils.validation import validate_and_normalize_amount


router = APIRouter(prefix="/api/v1/messes", tags=["finances"])


# === Request/Response models ===

class SummaryResponse(BaseModel):
    total_collected: str  # Decimal as string
    pending_dues: str
    total_collected_display: str  # "₹15,000"
    pending_dues_display: str
    total_members: int
    active_members: int
    is_partial: bool
    warnings: List[str]


class MemberDuesResponse(BaseModel):
    email: str
    name: str
    plan: str
    pending_dues: str
    source: str
    status: str
    attendance: Optional[int] = None


class FinancesResponse(BaseModel):
    mess_id: str
    pass_id: int
    summary: SummaryResponse
    members: List[MemberDuesResponse]


class PaymentResponse(BaseModel):
    id: Optional[str]
    user_email: str
    user_name: Optional[str] = None
    amount_paid: str
    remaining_dues: str
    total_dues: str
    payment_date: Optional[str]
    status: Optional[str] = None


class MemberPendingDuesResponse(BaseModel):
    email: str
    mess_id: str
    pending_dues: str
    source: str
    is_partial: bool
    warnings: List[str]


class PaymentFeedResponse(BaseModel):
    payments: List[PaymentResponse]
    is_partial: bool
    warnings: List[str]


class PaymentOutcomeResponse(BaseModel):
    payment: PaymentResponse
    previous_dues: str
    remaining_dues: str


class PayDuesRequest(BaseModel):
    user_email: str
    amount: str
    owner_email: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        """Comma or dot, at most 2 decimal places"""
        return validate_and_normalize_amount(v, max_decimal_places=2)


class JoinPaymentRequest(BaseModel):
    user_email: str
    selected_plan: Optional[str] = None  # "Monthly" / "Bimonthly"
    owner_email: Optional[str] = None
    initial_payment: Optional[str] = None


# === Helpers ===

def _summary_response(summary: FinancialSummary) -> SummaryResponse:
    currency = get_settings().CURRENCY
    return SummaryResponse(
        total_collected=str(summary.total_collected),
        pending_dues=str(summary.pending_dues),
        total_collected_display=format_money(summary.total_collected, currency),
        pending_dues_display=format_money(summary.pending_dues, currency),
        total_members=summary.total_members,
        active_members=summary.active_members,
        is_partial=summary.is_partial,
        warnings=list(summary.warnings),
    )


def _member_response(view: MemberDuesView) -> MemberDuesResponse:
    return MemberDuesResponse(
        email=view.email,
        name=view.name,
        plan=view.plan,
        pending_dues=str(view.pending_dues),
        source=view.source.value,
        status=view.status,
        attendance=view.attendance,
    )


def _payment_response(item: PaymentFeedItem) -> PaymentResponse:
    record = item.record
    return PaymentResponse(
        id=record.id,
        user_email=record.member_email,
        user_name=item.user_name,
        amount_paid=str(record.amount_paid),
        remaining_dues=str(record.remaining_due),
        total_dues=str(record.total_due),
        payment_date=record.payment_date.isoformat() if record.payment_date else None,
        status=record.status,
    )


def _outcome_response(outcome: PaymentOutcome) -> PaymentOutcomeResponse:
    item = PaymentFeedItem(record=outcome.record, user_name=outcome.record.user_name or "")
    return PaymentOutcomeResponse(
        payment=_payment_response(item),
        previous_dues=str(outcome.previous_dues),
        remaining_dues=str(outcome.remaining_dues),
    )


def _reconcile(
    mess_id: str,
    owner_email: Optional[str],
    on_leave: List[str],
    client: MessApiClient,
    coordinator: ReconciliationCoordinator,
):
    try:
        return ReconcileMessUseCase(client, coordinator).execute(
            mess_id, owner_email=owner_email, inactive_members=on_leave,
        )
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ReconciliationSuperseded as e:
        raise HTTPException(status_code=409, detail=str(e))


# === Endpoints ===

@router.get("/{mess_id}/finances", response_model=FinancesResponse)
def get_finances(
    mess_id: str,
    owner_email: Optional[str] = None,
    on_leave: List[str] = Query(default=[]),
    client: MessApiClient = Depends(get_mess_api),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    """Financial summary and per-member dues of a mess"""
    result = _reconcile(mess_id, owner_email, on_leave, client, coordinator)
    return FinancesResponse(
        mess_id=result.mess_id,
        pass_id=result.pass_id,
        summary=_summary_response(result.summary),
        members=[_member_response(v) for v in result.members],
    )


@router.get("/{mess_id}/members", response_model=List[MemberDuesResponse])
def list_members(
    mess_id: str,
    search: str = "",
    filter: str = "all",
    owner_email: Optional[str] = None,
    on_leave: List[str] = Query(default=[]),
    client: MessApiClient = Depends(get_mess_api),
    coordinator: ReconciliationCoordinator = Depends(get_coordinator),
):
    """Member list with search and all / active / leave / dues filter"""
    result = _reconcile(mess_id, owner_email, on_leave, client, coordinator)
    try:
        views = filter_member_views(result.members, search=search, status_filter=filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [_member_response(v) for v in views]


@router.get("/{mess_id}/payments", response_model=PaymentFeedResponse)
def list_payments(
    mess_id: str,
    search: str = "",
    type: str = "all",
    client: MessApiClient = Depends(get_mess_api),
):
    """Payment feed, newest first"""
    try:
        feed = BuildPaymentFeedUseCase(client).execute(mess_id)
        items = filter_payment_feed(feed.items, search=search, kind=type)
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PaymentFeedResponse(
        payments=[_payment_response(item) for item in items],
        is_partial=feed.is_partial,
        warnings=list(feed.warnings),
    )


@router.get("/{mess_id}/members/{email}/dues", response_model=MemberPendingDuesResponse)
def get_member_dues(
    mess_id: str,
    email: str,
    client: MessApiClient = Depends(get_mess_api),
):
    """Pending dues of one member"""
    try:
        dues = GetMemberPendingDuesUseCase(client).execute(email, mess_id)
    except (FetchExhausted, MalformedMessConfig) as e:
        raise HTTPException(status_code=503, detail=str(e))
    return MemberPendingDuesResponse(
        email=dues.email,
        mess_id=dues.mess_id,
        pending_dues=str(dues.pending_dues),
        source=dues.source.value,
        is_partial=dues.is_partial,
        warnings=list(dues.warnings),
    )


@router.post("/{mess_id}/payments", response_model=PaymentOutcomeResponse)
def pay_dues(
    mess_id: str,
    req: PayDuesRequest,
    client: MessApiClient = Depends(get_mess_api),
):
    """Record a dues payment"""
    try:
        outcome = RecordDuesPaymentUseCase(client).execute(
            user_email=req.user_email,
            mess_id=mess_id,
            amount=req.amount,
            owner_email=req.owner_email,
        )
    except PaymentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (FetchExhausted, MalformedMessConfig, MalformedPaymentRecord) as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _outcome_response(outcome)


@router.post("/{mess_id}/join-payment", response_model=PaymentOutcomeResponse)
def record_join_payment(
    mess_id: str,
    req: JoinPaymentRequest,
    client: MessApiClient = Depends(get_mess_api),
):
    """Initial payment after joining a mess"""
    try:
        outcome = RecordJoinPaymentUseCase(client).execute(
            user_email=req.user_email,
            mess_id=mess_id,
            selected_plan=req.selected_plan,
            owner_email=req.owner_email,
            initial_payment=req.initial_payment,
        )
    except PaymentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (FetchExhausted, MalformedMessConfig, MalformedPaymentRecord) as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _outcome_response(outcome)
