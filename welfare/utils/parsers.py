# welfare/utils/parsers.py
"""
Input coercion for service payloads (JSON bodies, CLI args, stored timelines).

parse_* raise ValidationError keyed by the field name.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dateutil import parser as date_parser

from welfare.errors import ValidationError

CENTS = Decimal("0.01")


def _blank(val) -> bool:
    return val is None or (isinstance(val, str) and val.strip() == "")


# ======================
# Strict
# ======================
def parse_date(val, field: str) -> date:
    """Accepts date, datetime, "YYYY-MM-DD" or a full ISO-8601 timestamp."""
    if _blank(val):
        raise ValidationError({field: "Date is required."})
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    try:
        return date_parser.isoparse(str(val).strip()).date()
    except (TypeError, ValueError, OverflowError):
        raise ValidationError({field: "Invalid date."})


def parse_money(val, field: str, *, allow_zero: bool = False) -> Decimal:
    if _blank(val) or isinstance(val, bool):
        raise ValidationError({field: "Amount is required."})
    try:
        amount = Decimal(str(val).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError({field: "Invalid amount."})
    if not amount.is_finite():
        raise ValidationError({field: "Invalid amount."})
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError({field: "Amount must be greater than zero."})
    return amount


def parse_int(val, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    if _blank(val) or isinstance(val, bool):
        raise ValidationError({field: "Value is required."})
    if isinstance(val, float) and not val.is_integer():
        raise ValidationError({field: "Must be a whole number."})
    try:
        number = int(str(val).strip()) if isinstance(val, str) else int(val)
    except (TypeError, ValueError):
        raise ValidationError({field: "Must be a whole number."})
    if minimum is not None and number < minimum:
        raise ValidationError({field: f"Must be at least {minimum}."})
    if maximum is not None and number > maximum:
        raise ValidationError({field: f"Must be at most {maximum}."})
    return number


def pick(payload: dict, *keys, default=None):
    """First present key wins; lets callers accept camelCase and snake_case."""
    for key in keys:
        if key in payload:
            return payload[key]
    return default
