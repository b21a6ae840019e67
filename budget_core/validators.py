"""Validation helpers shared across household budget services."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from uuid import uuid4

from .exceptions import ValidationError
from .models import parse_date, parse_datetime

# Suggestions offered by the console interface; any non-empty category is accepted.
DEFAULT_CATEGORIES = (
    "Groceries",
    "Utilities",
    "Rent",
    "Transport",
    "Dining",
    "Entertainment",
    "Healthcare",
    "Shopping",
    "Other",
)


def _quantize_two_decimals(amount: Decimal) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _parse_decimal(raw: object, field: str) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:  # type: ignore[arg-type]
        raise ValidationError(f"{field} must be a numeric value") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a positive Decimal with exactly two fraction digits."""
    amount = _parse_decimal(raw, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return _quantize_two_decimals(amount)


def parse_budget(raw: object, field: str = "budget") -> Decimal:
    """Convert raw input to a non-negative Decimal; zero disables percentages."""
    amount = _parse_decimal(raw, field)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return _quantize_two_decimals(amount)


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_date(value: object, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a date or yyyy-mm-dd string")
    try:
        return parse_date(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must use the yyyy-mm-dd format") from exc


def validate_datetime(value: object, field: str) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = parse_datetime(value)
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO 8601 timestamp") from exc
    else:
        raise ValidationError(f"{field} must be a datetime or ISO 8601 string")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def new_record_id(now: datetime) -> str:
    """Return an id derived from creation time, unique within a millisecond."""
    millis = int(now.timestamp() * 1000)
    return f"{millis}-{uuid4().hex[:8]}"
