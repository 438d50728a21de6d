"""
Subscription amount resolution.

The mess "subscription plan" field is overloaded: a value up to
FIXED_AMOUNT_THRESHOLD is a number of days (multiplied by the meal price),
anything above it is already a total amount. Member profiles carry textual
descriptors instead ("Monthly", "Bimonthly").

Rule order, first match wins:
  1. absent                         -> 30 days
  2. number  > 100                  -> the number itself
  3. number <= 100                  -> number x price
  4. text with "monthly"            -> 30 days (not "bimonthly")
  5. text with "bimonthly"          -> 60 days
  6. text starting with a number    -> rules 2-3 on that number
  7. anything else                  -> 30 days

The result is always a finite, non-negative Decimal.
"""
import re
from decimal import Decimal
from typing import Any, Optional

from mymess.utils.money import ZERO, non_negative, to_decimal

FIXED_AMOUNT_THRESHOLD = Decimal("100")
MONTHLY_DAYS = Decimal("30")
BIMONTHLY_DAYS = Decimal("60")

# Leading number, the way a JS client's parseFloat reads "20 days"
_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def resolve_amount(plan_value: Any, price_per_meal: Any) -> Decimal:
    """
    Resolve a plan value to the subscription amount

    Args:
        plan_value: number, descriptive string or None
        price_per_meal: meal price (number, numeric string or Decimal)

    Returns:
        Amount owed for one subscription period (>= 0)

    Example:
        >>> resolve_amount(150, 100)
        Decimal('150')
        >>> resolve_amount(20, 100)
        Decimal('2000')
        >>> resolve_amount("Bimonthly", 100)
        Decimal('6000')
    """
    price = non_negative(to_decimal(price_per_meal))
    monthly = MONTHLY_DAYS * price

    if plan_value is None:
        return monthly

    number = _as_number(plan_value)
    if number is not None:
        return _resolve_number(number, price)

    if isinstance(plan_value, str):
        text = plan_value.lower()
        if "bimonthly" in text:
            return BIMONTHLY_DAYS * price
        if "monthly" in text:
            return monthly
        parsed = _parse_leading_number(plan_value)
        if parsed is not None:
            return _resolve_number(parsed, price)

    return monthly


def _resolve_number(number: Decimal, price: Decimal) -> Decimal:
    if number > FIXED_AMOUNT_THRESHOLD:
        return number
    return non_negative(number * price)


def _as_number(value: Any) -> Optional[Decimal]:
    """Finite numeric value (bool excluded), else None"""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    return to_decimal(value, default=None)


def _parse_leading_number(text: str) -> Optional[Decimal]:
    match = _LEADING_NUMBER_RE.match(text)
    if match is None:
        return None
    return to_decimal(match.group(1), default=None)
