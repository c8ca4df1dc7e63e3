"""Rental price arithmetic.

Pure functions only. Amounts are ``Decimal``; anything that cannot be read
as a finite, non-negative number counts as zero instead of raising.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def to_amount(value: object) -> Decimal:
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not d.is_finite() or d < 0:
        return ZERO
    return d


def line_amount(price: object, quantity: object) -> Decimal:
    """price × quantity, rounded half-up to whole cents."""
    return (to_amount(price) * to_amount(quantity)).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def rental_days(start: object, end: object) -> int:
    s, e = parse_date(start), parse_date(end)
    if s is None or e is None:
        return 1
    days = (e - s).days + 1
    return days if days > 0 else 1


def rendered_line_amount(stored_line_amount: object, days: int) -> Decimal:
    return to_amount(stored_line_amount) * days


def format_money(amount: Decimal) -> str:
    return f"{to_amount(amount).quantize(CENTS, rounding=ROUND_HALF_UP):.2f}"


def format_plain(value: object) -> str:
    """50.00 -> '50', 12.50 -> '12.5'."""
    d = to_amount(value)
    if d == d.to_integral_value():
        return str(int(d))
    return format(d.normalize(), "f")


def days_label(days: int) -> str:
    return f"{days} Day{'s' if days > 1 else ''}"


def format_date(value: object) -> str:
    d = parse_date(value)
    return d.strftime("%d/%m/%Y") if d else "-"
