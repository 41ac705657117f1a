# Overview: Service-layer operations for store-credit sales; creation and voiding.

"""
Sales collaborator for the credit ledger.

Checkout itself lives elsewhere; this module only records the store-credit
sales the ledger tracks and voids sales. A voided credit sale leaves the
pending listings, the summary and customer balances, and rejects further
payments.
"""

from __future__ import annotations

from datetime import timedelta

from ..errors import InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Customer, Sale
from ..models.sales import (
    CREDIT_STATUS_PENDING,
    PAYMENT_METHOD_CREDIT,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_VOIDED,
)
from ..money import MAX_AMOUNT_CENTS
from ..time_utils import utcnow
from ..validation import ValidationError
from . import sequence_service
from .concurrency import apply_lock_timeout, atomic, claim_write_lock, lock_for_update
from .credit_service import credit_term_days


def _require_cents(value, field: str, *, allow_zero: bool = True) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>=' if allow_zero else '>'} 0")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} is too large")
    return value


def get_sale(org_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, org_id=org_id).first()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def create_credit_sale(
    org_id: int,
    customer_id: int,
    *,
    subtotal_cents: int,
    tax_cents: int = 0,
    discount_cents: int = 0,
    operator_id: int | None = None,
    credit_days: int | None = None,
    notes: str | None = None,
) -> Sale:
    """
    Record a completed store-credit sale for a customer.

    The customer is mandatory and snapshotted onto the sale. The sale
    starts PENDING with nothing paid and is due credit_days (default:
    CREDIT_TERM_DAYS) after today.
    """
    subtotal_cents = _require_cents(subtotal_cents, "subtotal_cents")
    tax_cents = _require_cents(tax_cents, "tax_cents")
    discount_cents = _require_cents(discount_cents, "discount_cents")
    total_cents = subtotal_cents + tax_cents - discount_cents
    if total_cents <= 0:
        raise ValidationError("Sale total must be greater than 0")

    if credit_days is None:
        credit_days = credit_term_days()
    if isinstance(credit_days, bool) or not isinstance(credit_days, int) or credit_days < 0:
        raise ValidationError("credit_days must be a non-negative integer")

    if not customer_id:
        raise ValidationError("A customer is required for store-credit sales")

    with atomic():
        apply_lock_timeout()
        claim_write_lock(Customer, Customer.id == customer_id, Customer.org_id == org_id)
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, org_id=org_id)
        ).first()
        if not customer:
            raise NotFoundError("Customer not found")

        now = utcnow()
        sale = Sale(
            org_id=org_id,
            invoice_number=sequence_service.next_invoice_number(org_id),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_phone=customer.phone,
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            discount_cents=discount_cents,
            total_cents=total_cents,
            payment_method=PAYMENT_METHOD_CREDIT,
            amount_paid_cents=0,
            credit_status=CREDIT_STATUS_PENDING,
            status=SALE_STATUS_COMPLETED,
            due_date=now.date() + timedelta(days=credit_days),
            notes=(notes or "").strip() or None,
            created_by_user_id=operator_id,
            created_at=now,
        )
        db.session.add(sale)
        db.session.flush()

    return sale


def void_sale(org_id: int, sale_id: int, *, operator_id: int | None, reason: str) -> Sale:
    """
    Void a completed sale.

    The sale row is locked so a void cannot interleave with a payment
    registration on the same sale.
    """
    if not reason or not str(reason).strip():
        raise ValidationError("reason required")

    with atomic():
        apply_lock_timeout()
        claim_write_lock(Sale, Sale.id == sale_id, Sale.org_id == org_id)
        sale = lock_for_update(
            db.session.query(Sale).filter_by(id=sale_id, org_id=org_id)
        ).first()
        if not sale:
            raise NotFoundError("Sale not found")
        if sale.status == SALE_STATUS_VOIDED:
            raise InvalidStateError("Sale is already voided")

        sale.status = SALE_STATUS_VOIDED
        sale.voided_by_user_id = operator_id
        sale.voided_at = utcnow()
        sale.void_reason = str(reason).strip()[:255]
        db.session.flush()

    return sale
