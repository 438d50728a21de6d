"""
Payment record domain entity - one recorded transaction of a member to a mess

Records are created once per payment action on the backend and never mutated;
a later record for the same member supersedes the earlier ones for the
"current balance".
"""
import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from mymess.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)

# Java LocalDateTime drops trailing zeros and may carry nanoseconds; older
# fromisoformat only takes 3 or 6 fraction digits
_FRACTION_RE = re.compile(r"\.(\d+)")


class MalformedPaymentRecord(ValueError):
    """Payload that cannot be read as a payment record"""
    pass


@dataclass(frozen=True)
class PaymentRecord:
    """
    Payment record (read from GET /payment/mess/{messId})

    remaining_due is the outstanding balance carried forward after this
    payment; only the latest record per member is authoritative for it.
    payment_date is naive UTC, None when the backend sent nothing usable.
    """
    id: Optional[str]
    member_email: str
    owner_email: Optional[str]
    mess_id: Optional[str]
    total_due: Decimal
    amount_paid: Decimal
    remaining_due: Decimal
    payment_date: Optional[datetime]
    status: Optional[str] = None
    payment_method: Optional[str] = None
    user_name: Optional[str] = None
    mess_name: Optional[str] = None

    @staticmethod
    def from_payload(data: Dict[str, Any]) -> "PaymentRecord":
        """
        Build a record from a backend payload

        Accepts both the backend field names (userEmail, remainingDues,
        totalDues) and the engine names (memberEmail, remainingDue, totalDue).

        Raises:
            MalformedPaymentRecord: not an object, or no member email
        """
        if not isinstance(data, dict):
            raise MalformedPaymentRecord(f"Payment record is not an object: {type(data).__name__}")

        member_email = data.get("userEmail") or data.get("memberEmail")
        if not isinstance(member_email, str) or not member_email.strip():
            raise MalformedPaymentRecord(f"Payment record {data.get('id')!r} has no member email")

        amount_paid = to_decimal(data.get("amountPaid"))
        remaining_due = to_decimal(_first_present(data, "remainingDues", "remainingDue"))
        total_due = to_decimal(
            _first_present(data, "totalDues", "totalDue"),
            default=amount_paid + remaining_due,
        )

        record_id = data.get("id")
        return PaymentRecord(
            id=str(record_id) if record_id is not None else None,
            member_email=member_email.strip(),
            owner_email=data.get("ownerEmail"),
            mess_id=data.get("messId"),
            total_due=total_due,
            amount_paid=amount_paid,
            remaining_due=remaining_due,
            payment_date=parse_payment_date(data.get("paymentDate")),
            status=data.get("status"),
            payment_method=data.get("paymentMethod"),
            user_name=data.get("userName"),
            mess_name=data.get("messName"),
        )


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _six_digit_fraction(match: re.Match) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_payment_date(value: Any) -> Optional[datetime]:
    """
    Parse a backend timestamp to naive UTC

    Supported shapes:
        "2025-01-01T10:00:00", "2025-01-01T10:00:00.123456789Z",
        [2025, 1, 1, 10, 0, 0, 123000000]  (Jackson array form),
        1735725600000  (epoch milliseconds)

    Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None

    parsed: Optional[datetime] = None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION_RE.sub(_six_digit_fraction, text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    elif isinstance(value, (list, tuple)):
        if len(value) < 3:
            return None
        try:
            parts = [int(p) for p in value[:7]]
            parts += [0] * (7 - len(parts))
            parsed = datetime(*parts[:6], parts[6] // 1000)
        except (TypeError, ValueError):
            return None
    elif isinstance(value, (int, float)):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if parsed is not None and parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_payment_records(raw: Any) -> Tuple[List[PaymentRecord], List[str]]:
    """
    Read the payment list of a mess, absorbing malformed input

    A non-list body becomes an empty list; unreadable records are skipped and
    negative balances are clamped to zero. Each such issue adds a warning so
    the caller can flag the result as partial.

    Returns:
        (records, warnings)
    """
    warnings: List[str] = []
    if raw is None:
        raw = []
    if not isinstance(raw, list):
        logger.warning("Payments payload is not a list: %s", type(raw).__name__)
        return [], [f"payments payload is not a list ({type(raw).__name__})"]

    records: List[PaymentRecord] = []
    for index, item in enumerate(raw):
        try:
            record = PaymentRecord.from_payload(item)
        except MalformedPaymentRecord as exc:
            logger.warning("Skipping payment #%d: %s", index, exc)
            warnings.append(f"skipped payment #{index}: {exc}")
            continue

        if record.remaining_due < ZERO:
            logger.warning("Payment %s has negative remaining dues, clamping to 0", record.id)
            warnings.append(f"payment {record.id} had negative remaining dues")
            record = replace(record, remaining_due=ZERO)

        records.append(record)

    return records, warnings
