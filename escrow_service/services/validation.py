"""
Input coercion helpers shared by the services.
"""

import uuid
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from escrow_service.errors import ValidationError

CENTS = Decimal("0.01")


def parse_uuid(value, field="id"):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"Invalid {field}")


def parse_amount(value, field="amount"):
    """Coerce a positive monetary amount to a two-place Decimal."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Valid {field} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Valid {field} is required")
    if not amount.is_finite():
        raise ValidationError(f"Valid {field} is required")
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise ValidationError(f"{field.capitalize()} must be greater than zero")
    return amount


def parse_positive_int(value, field):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return value


def parse_references(value, field):
    """Attachment references are opaque strings produced by the upload handler."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) and v for v in value):
        raise ValidationError(f"{field} must be a list of references")
    return list(value)
