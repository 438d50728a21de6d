"""
Ledger aggregation - latest payment per member and lifetime collection

Pure functions over already-fetched records; nothing here performs I/O.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

from mymess.domain.payment import PaymentRecord
from mymess.utils.money import ZERO


@dataclass(frozen=True)
class LedgerAggregate:
    """
    latest_by_member: authoritative record per member email (sorted by email)
    total_collected: sum of amount_paid over every record, not only the latest
    unpaid_members: joined members with no record, in roster order
    """
    latest_by_member: Dict[str, PaymentRecord]
    total_collected: Decimal
    unpaid_members: Tuple[str, ...]


def recency_key(record: PaymentRecord) -> tuple:
    """
    Ordering of records of one member: later payment_date wins, then the
    larger amount_paid, then the larger id. Undated records sort oldest.
    All-digit ids compare as numbers and rank above other ids, which
    compare as strings.
    """
    return (record.payment_date or datetime.min, record.amount_paid, _id_key(record.id))


def _id_key(record_id: Optional[str]) -> Tuple[int, int, str]:
    if record_id and record_id.isdigit():
        return 1, int(record_id), ""
    return 0, 0, record_id or ""


def aggregate(payments: Iterable[PaymentRecord], joined_members: Iterable[str]) -> LedgerAggregate:
    """
    Partition payments by member and select the latest record of each

    Args:
        payments: every payment record of the mess
        joined_members: current roster

    Returns:
        LedgerAggregate (independent of the input order)
    """
    latest: Dict[str, PaymentRecord] = {}
    total_collected = ZERO

    for record in payments:
        total_collected += record.amount_paid
        current = latest.get(record.member_email)
        if current is None or recency_key(record) > recency_key(current):
            latest[record.member_email] = record

    unpaid = tuple(
        member for member in dict.fromkeys(joined_members)
        if member not in latest
    )

    return LedgerAggregate(
        latest_by_member=dict(sorted(latest.items())),
        total_collected=total_collected,
        unpaid_members=unpaid,
    )
