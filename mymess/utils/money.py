"""
Money helpers shared by the dues engine and the API layer.

Usage:
    from mymess.utils.money import format_money, to_decimal

    format_money(15000, "INR")     -> "₹15,000"
    format_money(1200.50, "USD")   -> "1,200 USD"
    to_decimal("2500.0")           -> Decimal("2500.0")
    to_decimal("abc")              -> Decimal("0")
"""
from decimal import Decimal, InvalidOperation

_CURRENCY_PREFIX = {
    "INR": "₹",
}

ZERO = Decimal("0")


def currency_label(code: str) -> str:
    """Human readable currency marker."""
    return _CURRENCY_PREFIX.get(code, code)


def format_money(amount, currency: str = "INR", decimals: int = 0) -> str:
    """
    Format an amount with thousands separators and a currency marker.

    Args:
        amount: int / float / Decimal / str
        currency: ISO currency code (INR, USD, ...)
        decimals: digits after the decimal point

    Returns:
        "₹15,000" / "1,200 USD"
    """
    if isinstance(amount, str):
        amount = Decimal(amount)
    formatted = f"{{:,.{decimals}f}}".format(amount)
    if currency in _CURRENCY_PREFIX:
        return f"{currency_label(currency)}{formatted}"
    return f"{formatted} {currency}"


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """
    Coerce a wire value (number or numeric string) to a finite Decimal.

    Booleans, None, empty strings, NaN and infinities yield ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            result = Decimal(text)
        except InvalidOperation:
            return default
    else:
        return default
    if not result.is_finite():
        return default
    return result


def non_negative(amount: Decimal) -> Decimal:
    """Clamp an amount at zero."""
    return amount if amount > ZERO else ZERO
