from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any


# Largest single voucher accepted: 99,999,999.99
MAX_VOUCHER_AMOUNT = Decimal("99999999.99")

AMOUNT_QUANTUM = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level: the referenced voucher or representative does not exist."""


class InvalidStateTransition(ValueError):
    """409-level: the voucher is not in a state that allows the operation."""


class UpstreamUnavailable(RuntimeError):
    """503-level: the store or the summary service could not be reached."""


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce a client-supplied amount into a positive two-place Decimal.

    Accepts ints, floats and numeric strings. Rejects booleans, NaN/inf,
    zero, negatives, more than two fractional digits and anything above
    MAX_VOUCHER_AMOUNT.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required and must be a number")

    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"{field} must be a finite number")
        value = repr(value)

    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} is required and must be a number")

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    # Bound first: quantize overflows the decimal context on huge exponents.
    if amount > MAX_VOUCHER_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum of {MAX_VOUCHER_AMOUNT}")
    if amount != amount.quantize(AMOUNT_QUANTUM):
        raise ValidationError(f"{field} must have at most two decimal places")

    return amount.quantize(AMOUNT_QUANTUM)


def require_text(value: Any, field: str, max_length: int | None = None) -> str:
    """Return the stripped string or raise ValidationError when blank."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    text = value.strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def optional_text(value: Any, field: str, max_length: int | None = None) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    text = value.strip()
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text
