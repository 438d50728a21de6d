"""
MyMess backend client - thin typed wrapper over the backend endpoints

Every call goes through the ResilientFetcher. Reads retry with backoff;
payment recording is sent once because the backend has no idempotency key.
"""
import logging
from decimal import Decimal
from typing import Any, List, Optional, Tuple
from urllib.parse import quote

import requests

from mymess.config import get_settings
from mymess.domain.mess import MessConfig, MemberProfile
from mymess.domain.payment import PaymentRecord, parse_payment_records
from mymess.infrastructure.http.fetcher import FetchExhausted, HttpRequest, ResilientFetcher
from mymess.utils.money import to_decimal

logger = logging.getLogger(__name__)

_UNDECODABLE = object()


def _segment(value: str) -> str:
    return quote(str(value), safe="@")


class MessApiClient:
    """
    Client for the MyMess backend

    Endpoints used:
        GET  /mess/getById/{id}
        GET  /mess/getByEmail/{email}
        GET  /payment/mess/{messId}
        GET  /payment/user/{email}/mess/{messId}
        GET  /payment/pending/user/{email}/mess/{messId}
        POST /payment/record
        GET  /byEmail/{email}
    """

    def __init__(self, fetcher: Optional[ResilientFetcher] = None, base_url: Optional[str] = None):
        self.fetcher = fetcher or ResilientFetcher()
        self.base_url = (base_url or get_settings().get_api_base_url()).rstrip("/")

    # ── Mess ─────────────────────────────────────────────────────────────────

    def get_mess(self, mess_id: str) -> MessConfig:
        """
        Raises:
            FetchExhausted: backend unreachable
            MalformedMessConfig: body does not describe a mess
        """
        return MessConfig.from_payload(self._get_json(f"/mess/getById/{_segment(mess_id)}"))

    def get_mess_by_owner(self, owner_email: str) -> MessConfig:
        return MessConfig.from_payload(self._get_json(f"/mess/getByEmail/{_segment(owner_email)}"))

    def load_mess(self, mess_id: str, owner_email: Optional[str] = None) -> MessConfig:
        """
        Mess by id, falling back to the owner's email lookup when the id
        lookup is exhausted and an owner email is known
        """
        try:
            return self.get_mess(mess_id)
        except FetchExhausted:
            if not owner_email:
                raise
            logger.warning("Mess %s lookup failed, retrying by owner email %s", mess_id, owner_email)
            return self.get_mess_by_owner(owner_email)

    # ── Payments ─────────────────────────────────────────────────────────────

    def list_mess_payments(self, mess_id: str) -> Tuple[List[PaymentRecord], List[str]]:
        """
        All payment records of a mess

        Returns:
            (records, warnings) - warnings describe absorbed malformed input
        """
        return self._get_records(f"/payment/mess/{_segment(mess_id)}")

    def list_member_payments(self, email: str, mess_id: str) -> Tuple[List[PaymentRecord], List[str]]:
        return self._get_records(f"/payment/user/{_segment(email)}/mess/{_segment(mess_id)}")

    def get_pending_dues(self, email: str, mess_id: str) -> Optional[Decimal]:
        """
        Backend-computed pending dues of one member

        Returns:
            The amount, or None when the body carries no usable pendingDues
            (number or numeric string)
        """
        body = self._get_json(
            f"/payment/pending/user/{_segment(email)}/mess/{_segment(mess_id)}"
        )
        if not isinstance(body, dict):
            return None
        return to_decimal(body.get("pendingDues"), default=None)

    def record_payment(
        self,
        user_email: str,
        owner_email: str,
        mess_id: str,
        amount_paid: Decimal,
        remaining_dues: Decimal,
    ) -> PaymentRecord:
        """
        POST /payment/record (form-encoded)

        Raises:
            FetchExhausted: the request failed
            MalformedPaymentRecord: the response is not a payment record
        """
        request = HttpRequest(
            method="POST",
            url=self._url("/payment/record"),
            data={
                "userEmail": user_email,
                "ownerEmail": owner_email,
                "messId": mess_id,
                "amountPaid": str(amount_paid),
                "remainingDues": str(remaining_dues),
            },
        )
        response = self.fetcher.fetch(request, max_attempts=1)
        return PaymentRecord.from_payload(_decode(response))

    # ── Users ────────────────────────────────────────────────────────────────

    def get_user_profile(self, email: str) -> MemberProfile:
        return MemberProfile.from_payload(email, self._get_json(f"/byEmail/{_segment(email)}"))

    # ── Internals ────────────────────────────────────────────────────────────

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _get_json(self, path: str) -> Any:
        response = self.fetcher.fetch(HttpRequest(method="GET", url=self._url(path)))
        body = _decode(response)
        return None if body is _UNDECODABLE else body

    def _get_records(self, path: str) -> Tuple[List[PaymentRecord], List[str]]:
        response = self.fetcher.fetch(HttpRequest(method="GET", url=self._url(path)))
        body = _decode(response)
        if body is _UNDECODABLE:
            return [], [f"undecodable payments body from {path}"]
        return parse_payment_records(body)


def _decode(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        logger.warning("Undecodable JSON body from %s", response.url)
        return _UNDECODABLE
