"""Client-side input guards.

Each helper rejects obviously invalid input with a
:class:`~produce_portal.errors.ValidationError` carrying the message shown to
the user, before any backend call is made.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Optional

from . import log
from .constants import MIN_PASSWORD_LENGTH, ZERO
from .errors import ValidationError


def require_text(value: Optional[str], message: str) -> str:
    """Return ``value`` stripped, or raise when it is blank."""
    cleaned = (value or "").strip()
    if not cleaned:
        log.warning("Validation failed: %s", message)
        raise ValidationError(message)
    return cleaned


def parse_amount(raw: object, message: str = "Please enter a valid amount") -> Decimal:
    """Parse ``raw`` into a strictly positive :class:`Decimal`.

    Args:
        raw (object): User-supplied value, usually text from a form field.
        message (str): Message carried by the raised error.

    Returns:
        Decimal: The parsed amount.

    Raises:
        ValidationError: If ``raw`` is not numeric or not greater than zero.
    """
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as exc:
        log.warning("Amount validation failed: %r", raw)
        raise ValidationError(message) from exc
    if not amount.is_finite() or amount <= ZERO:
        log.warning("Amount validation failed: %r", raw)
        raise ValidationError(message)
    return amount


def require_positive_quantity(qty: int) -> None:
    """Validate that an order quantity is at least one."""
    if qty < 1:
        log.warning("Quantity validation failed: %s", qty)
        raise ValidationError("Quantity must be at least 1")


def require_password(password: Optional[str]) -> str:
    """Validate the minimum password length and return the password."""
    if not password or not password.strip():
        raise ValidationError("Please enter a new password")
    if len(password) < MIN_PASSWORD_LENGTH:
        log.warning("Password validation failed: too short")
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def require_matching_passwords(password: Optional[str], confirmation: Optional[str]) -> str:
    """Validate a new password together with its confirmation field."""
    if not password or not password.strip():
        raise ValidationError("Please enter a new password")
    if password != confirmation:
        log.warning("Password validation failed: confirmation mismatch")
        raise ValidationError("Passwords do not match")
    return require_password(password)


__all__ = [
    "require_text",
    "parse_amount",
    "require_positive_quantity",
    "require_password",
    "require_matching_passwords",
]
