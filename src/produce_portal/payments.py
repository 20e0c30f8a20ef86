"""Recording received payments and listing them.

A payment is a credit on the customer's ledger. Cheque payments need cheque
details and online payments need the bank UTR reference; only the detail that
matches the method is sent.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from . import log
from .backend import BackendService
from .constants import PaymentMethod
from .errors import ValidationError
from .models import Payment
from .session import AdminSession
from .validation import parse_amount


@dataclass(frozen=True)
class PaymentForm:
    """Validated payment ready for submission."""

    store_number: str
    company_name: str
    amount: Decimal
    method: PaymentMethod
    cheque_details: Optional[str] = None
    utr_details: Optional[str] = None


def build_payment(
    store_number: Optional[str],
    company_name: str,
    raw_amount: object,
    method: PaymentMethod | str,
    *,
    cheque_details: Optional[str] = None,
    utr_details: Optional[str] = None,
) -> PaymentForm:
    """Validate the payment form.

    Raises:
        ValidationError: If no customer is selected, the amount is not
            positive, the method is unknown, or the detail required by the
            method is missing.
    """

    if not store_number or not store_number.strip():
        raise ValidationError("Please select a customer")
    amount = parse_amount(raw_amount)
    try:
        payment_method = PaymentMethod(method)
    except ValueError as exc:
        raise ValidationError(f"Unknown payment method: {method}") from exc

    cheque = (cheque_details or "").strip()
    utr = (utr_details or "").strip()
    if payment_method is PaymentMethod.CHEQUE and not cheque:
        raise ValidationError("Please enter cheque details")
    if payment_method is PaymentMethod.ONLINE and not utr:
        raise ValidationError("Please enter UTR details")

    return PaymentForm(
        store_number=store_number.strip(),
        company_name=company_name,
        amount=amount,
        method=payment_method,
        cheque_details=cheque if payment_method is PaymentMethod.CHEQUE else None,
        utr_details=utr if payment_method is PaymentMethod.ONLINE else None,
    )


async def record_payment(backend: BackendService, session: AdminSession, form: PaymentForm) -> None:
    await backend.add_payment(
        session.require_token(),
        form.store_number,
        form.company_name,
        form.amount,
        form.method.value,
        form.cheque_details,
        form.utr_details,
    )
    log.info("Recorded %s payment of %s for store '%s'", form.method.value, form.amount, form.store_number)


def payments_newest_first(payments: Iterable[Payment]) -> list[Payment]:
    return sorted(payments, key=lambda payment: payment.timestamp, reverse=True)


async def load_payments(
    backend: BackendService,
    session: AdminSession,
    store_number: Optional[str] = None,
) -> list[Payment]:
    """All payments, or one store's payments, newest first."""
    token = session.require_token()
    if store_number:
        payments = await backend.get_payments_by_store(token, store_number)
    else:
        payments = await backend.get_all_payments(token)
    return payments_newest_first(payments)


__all__ = [
    "PaymentForm",
    "build_payment",
    "record_payment",
    "payments_newest_first",
    "load_payments",
]
