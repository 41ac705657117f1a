# Overview: Service-layer operations for the store credit ledger; balances, payments and summaries.

"""
Store Credit ("fiado") Ledger Service

A store-credit sale (payment_method=CREDIT) is settled later through
partial payments ("abonos"). The credit_payments log is the source of
truth; sales.amount_paid_cents and sales.credit_status are a cache the
ledger rewrites in the same transaction as every payment insert.

INVARIANTS:
- sum(credit_payments.amount_cents for a sale) <= sale.total_cents
- credit status is a pure function of (paid, total):
    PAID    iff paid >= total
    PARTIAL iff 0 < paid < total
    PENDING iff paid == 0
- VOIDED sales never accept payments.

CONCURRENCY:
register_payment locks the sale row, then the tenant's receipt sequence
row, before writing anything. Two payments on the same sale serialize on
the sale lock and the second one re-reads the committed total, so paying
past the total is impossible. Payments on different sales of the same
tenant serialize on the sequence row, which keeps receipts gap-free.
Reads take no locks. Nothing in here retries.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import and_, func, select
from sqlalchemy.orm import aliased

from ..errors import (
    ExceedsBalanceError,
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
)
from ..extensions import db
from ..models import Sale, CreditPayment
from ..models.sales import (
    CREDIT_STATUS_PAID,
    CREDIT_STATUS_PARTIAL,
    CREDIT_STATUS_PENDING,
    PAYMENT_METHOD_CARD,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CREDIT,
    PAYMENT_METHOD_TRANSFER,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_VOIDED,
)
from ..money import format_cents
from ..time_utils import as_naive_utc, to_iso_date, to_utc_z, utcnow
from ..validation import ValidationError, parse_int, parse_pagination
from . import sequence_service
from .concurrency import apply_lock_timeout, atomic, claim_write_lock, lock_for_update


# Methods a credit can be paid with (never with more credit)
PAYABLE_METHODS = [
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CARD,
    PAYMENT_METHOD_TRANSFER,
]

OPEN_CREDIT_STATUSES = (CREDIT_STATUS_PENDING, CREDIT_STATUS_PARTIAL)
CREDIT_STATUSES = (CREDIT_STATUS_PENDING, CREDIT_STATUS_PARTIAL, CREDIT_STATUS_PAID)

STATUS_FILTER_ALL = "all"

# Values the storefront UI has always sent
_PAYMENT_METHOD_ALIASES = {
    "efectivo": PAYMENT_METHOD_CASH,
    "tarjeta": PAYMENT_METHOD_CARD,
    "transferencia": PAYMENT_METHOD_TRANSFER,
}
_STATUS_ALIASES = {
    "pendiente": CREDIT_STATUS_PENDING,
    "parcial": CREDIT_STATUS_PARTIAL,
    "pagado": CREDIT_STATUS_PAID,
}

NOTES_MAX_LENGTH = 1000


# =============================================================================
# DERIVED STATE
# =============================================================================

def derive_credit_status(paid_cents: int, total_cents: int) -> str:
    """Credit status from the paid amount and the sale total."""
    if paid_cents >= total_cents:
        return CREDIT_STATUS_PAID
    if paid_cents > 0:
        return CREDIT_STATUS_PARTIAL
    return CREDIT_STATUS_PENDING


def credit_term_days() -> int:
    return int(current_app.config.get("CREDIT_TERM_DAYS", 30))


def effective_due_date(sale: Sale) -> date:
    """Explicit due date, or sale date plus the configured credit term."""
    if sale.due_date is not None:
        return sale.due_date
    created = as_naive_utc(sale.created_at) or utcnow()
    return created.date() + timedelta(days=credit_term_days())


def normalize_payment_method(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"payment_method is required. Must be one of {PAYABLE_METHODS}")
    raw = value.strip()
    method = _PAYMENT_METHOD_ALIASES.get(raw.lower(), raw.upper())
    if method == PAYMENT_METHOD_CREDIT:
        raise ValidationError("A credit cannot be paid with store credit")
    if method not in PAYABLE_METHODS:
        raise ValidationError(f"Invalid payment method: {value}. Must be one of {PAYABLE_METHODS}")
    return method


def normalize_status_filter(value) -> str | None:
    """
    Map a listing status filter to a credit status.

    None means "open credits" (PENDING and PARTIAL), which is what an
    absent filter and "all" both select.
    """
    if value is None:
        return None
    raw = str(value).strip()
    if not raw or raw.lower() == STATUS_FILTER_ALL:
        return None
    status = _STATUS_ALIASES.get(raw.lower(), raw.upper())
    if status not in CREDIT_STATUSES:
        raise ValidationError(f"Invalid status filter: {value}. Must be one of {list(CREDIT_STATUSES)} or 'all'")
    return status


# =============================================================================
# QUERIES
# =============================================================================

def _credit_sales_query(org_id: int):
    return db.session.query(Sale).filter(
        Sale.org_id == org_id,
        Sale.payment_method == PAYMENT_METHOD_CREDIT,
    )


def _get_credit_sale(org_id: int, sale_id: int) -> Sale:
    sale = _credit_sales_query(org_id).filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError("Credit not found")
    return sale


def _sum_payments(sale_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(CreditPayment.amount_cents), 0))
        .filter(CreditPayment.sale_id == sale_id)
        .scalar()
    )
    return int(total or 0)


def _payments_newest_first(query):
    return query.order_by(CreditPayment.created_at.desc(), CreditPayment.id.desc())


def _list_payments(sale_id: int) -> list[CreditPayment]:
    return _payments_newest_first(
        db.session.query(CreditPayment).filter(CreditPayment.sale_id == sale_id)
    ).all()


def _payments_by_sale(sale_ids: list[int]) -> dict[int, list[CreditPayment]]:
    grouped: dict[int, list[CreditPayment]] = defaultdict(list)
    if not sale_ids:
        return grouped
    rows = _payments_newest_first(
        db.session.query(CreditPayment).filter(CreditPayment.sale_id.in_(sale_ids))
    ).all()
    for payment in rows:
        grouped[payment.sale_id].append(payment)
    return grouped


def _sale_snapshot(sale: Sale) -> dict:
    return {
        "id": sale.id,
        "invoice_number": sale.invoice_number,
        "customer_id": sale.customer_id,
        "customer_name": sale.customer_name,
        "customer_phone": sale.customer_phone,
        "subtotal_cents": sale.subtotal_cents,
        "tax_cents": sale.tax_cents,
        "discount_cents": sale.discount_cents,
        "total_cents": sale.total_cents,
        "status": sale.status,
        "due_date": to_iso_date(sale.due_date),
        "created_at": to_utc_z(sale.created_at),
    }


def _build_credit_detail(sale: Sale, payments: list[CreditPayment], today: date) -> dict:
    paid = sum(p.amount_cents for p in payments)
    total = sale.total_cents
    status = derive_credit_status(paid, total)
    due = effective_due_date(sale)
    return {
        "sale": _sale_snapshot(sale),
        "total_amount_cents": total,
        "paid_amount_cents": paid,
        "remaining_balance_cents": total - paid,
        "status": status,
        "due_date": due.isoformat(),
        "days_until_due": (due - today).days,
        "is_overdue": status != CREDIT_STATUS_PAID and due < today,
        "payments": [p.to_dict() for p in payments],
    }


def find_all_pending_credits(
    org_id: int,
    page=1,
    limit=10,
    customer_id=None,
    status=None,
) -> dict:
    """
    Page through the tenant's completed store-credit sales, newest first.

    status: None/"all" lists open credits (PENDING + PARTIAL); any other
    credit status lists exactly that status.

    Returns {"data": [credit detail...], "pagination": {...}}. The total
    comes from its own COUNT query, independent of the page slice.
    """
    page, limit = parse_pagination(page, limit)
    status_filter = normalize_status_filter(status)

    query = _credit_sales_query(org_id).filter(Sale.status == SALE_STATUS_COMPLETED)
    if customer_id not in (None, ""):
        query = query.filter(Sale.customer_id == parse_int(customer_id, "customer_id"))
    if status_filter:
        query = query.filter(Sale.credit_status == status_filter)
    else:
        query = query.filter(Sale.credit_status.in_(OPEN_CREDIT_STATUSES))

    total = query.order_by(None).count()

    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    payments = _payments_by_sale([s.id for s in sales])
    today = utcnow().date()

    return {
        "data": [_build_credit_detail(s, payments.get(s.id, []), today) for s in sales],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
    }


def get_credit_detail(org_id: int, sale_id: int) -> dict:
    """
    Sale snapshot, derived amounts and full payment history of one credit.

    Raises:
        NotFoundError: no store-credit sale with that id in the tenant
    """
    sale = _get_credit_sale(org_id, sale_id)
    return _build_credit_detail(sale, _list_payments(sale.id), utcnow().date())


def get_payment_history(org_id: int, sale_id: int) -> list[CreditPayment]:
    """
    Payments of a credit, newest first.

    Tenant ownership of the sale is checked here as well, so a sale id from
    another tenant is indistinguishable from an unknown one.
    """
    sale = _get_credit_sale(org_id, sale_id)
    return _list_payments(sale.id)


def get_summary(org_id: int) -> dict:
    """
    Accounts-receivable totals over the tenant's open credits.

    total_pending_cents: sum of open credit totals minus payments on them
    total_credits:       number of open credits
    customers_with_debt: distinct customers holding an open credit
    """
    open_credit = and_(
        Sale.org_id == org_id,
        Sale.payment_method == PAYMENT_METHOD_CREDIT,
        Sale.status == SALE_STATUS_COMPLETED,
        Sale.credit_status.in_(OPEN_CREDIT_STATUSES),
    )

    open_sale = aliased(Sale)
    open_sale_ids = select(open_sale.id).where(
        open_sale.org_id == org_id,
        open_sale.payment_method == PAYMENT_METHOD_CREDIT,
        open_sale.status == SALE_STATUS_COMPLETED,
        open_sale.credit_status.in_(OPEN_CREDIT_STATUSES),
    )
    paid_on_open = (
        select(func.coalesce(func.sum(CreditPayment.amount_cents), 0))
        .where(CreditPayment.sale_id.in_(open_sale_ids))
        .scalar_subquery()
    )

    row = db.session.execute(
        select(
            (func.coalesce(func.sum(Sale.total_cents), 0) - paid_on_open).label("total_pending"),
            func.count(func.distinct(Sale.id)).label("total_credits"),
            func.count(func.distinct(Sale.customer_id)).label("customers_with_debt"),
        ).where(open_credit)
    ).one()

    return {
        "total_pending_cents": int(row.total_pending or 0),
        "total_credits": int(row.total_credits or 0),
        "customers_with_debt": int(row.customers_with_debt or 0),
        "overdue_credits": count_overdue_credits(org_id),
    }


def count_overdue_credits(org_id: int, today: date | None = None) -> int:
    """Open credits whose effective due date is already past."""
    if today is None:
        today = utcnow().date()
    term = timedelta(days=credit_term_days())
    rows = (
        _credit_sales_query(org_id)
        .filter(
            Sale.status == SALE_STATUS_COMPLETED,
            Sale.credit_status.in_(OPEN_CREDIT_STATUSES),
        )
        .with_entities(Sale.due_date, Sale.created_at)
        .all()
    )
    overdue = 0
    for due_date, created_at in rows:
        due = due_date or ((as_naive_utc(created_at) or utcnow()).date() + term)
        if due < today:
            overdue += 1
    return overdue


# =============================================================================
# PAYMENT REGISTRATION
# =============================================================================

def _validate_amount(amount_cents) -> int:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("amount_cents must be an integer")
    if amount_cents <= 0:
        raise InvalidAmountError("Payment amount must be greater than 0")
    return amount_cents


def _clean_notes(notes) -> str | None:
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    notes = notes.strip()
    if len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"notes exceeds max length {NOTES_MAX_LENGTH}")
    return notes or None


def register_payment(
    org_id: int,
    sale_id: int,
    *,
    amount_cents: int,
    payment_method: str,
    notes: str | None = None,
    operator_id: int | None = None,
) -> CreditPayment:
    """
    Register a partial payment against a store-credit sale.

    Runs as a single transaction:
    1. lock the sale (id + tenant + CREDIT) and the tenant's receipt sequence
    2. reject unknown, voided, non-positive and over-balance payments
    3. insert the payment with the next receipt number
    4. rewrite the sale's amount_paid_cents and credit_status

    Any failure rolls back every write of the call.

    Returns:
        The persisted CreditPayment (created_at as stored)

    Raises:
        ValidationError: malformed amount, method or notes
        InvalidAmountError: amount <= 0 (checked before any row is touched)
        NotFoundError: no store-credit sale with that id in the tenant
        InvalidStateError: the sale is voided
        ExceedsBalanceError: amount greater than the remaining balance
    """
    amount_cents = _validate_amount(amount_cents)
    method = normalize_payment_method(payment_method)
    notes = _clean_notes(notes)

    with atomic():
        apply_lock_timeout()
        claim_write_lock(
            Sale,
            Sale.id == sale_id,
            Sale.org_id == org_id,
            Sale.payment_method == PAYMENT_METHOD_CREDIT,
        )

        sale = lock_for_update(
            _credit_sales_query(org_id).filter(Sale.id == sale_id)
        ).first()
        if not sale:
            raise NotFoundError("Credit not found")

        if sale.status == SALE_STATUS_VOIDED:
            raise InvalidStateError("Cannot register a payment on a voided sale")

        # Read under the sale lock: reflects every committed payment
        total_paid = _sum_payments(sale.id)
        remaining = sale.total_cents - total_paid

        if amount_cents <= 0:
            raise InvalidAmountError("Payment amount must be greater than 0")

        if amount_cents > remaining:
            raise ExceedsBalanceError(
                f"Amount exceeds the pending balance of {format_cents(remaining)}",
                remaining_cents=remaining,
            )

        receipt_number = sequence_service.next_receipt_number(org_id)

        payment = CreditPayment(
            org_id=org_id,
            sale_id=sale.id,
            customer_id=sale.customer_id,
            amount_cents=amount_cents,
            payment_method=method,
            receipt_number=receipt_number,
            notes=notes,
            received_by_user_id=operator_id,
            created_at=utcnow(),
        )
        db.session.add(payment)

        new_total_paid = total_paid + amount_cents
        sale.amount_paid_cents = new_total_paid
        sale.credit_status = derive_credit_status(new_total_paid, sale.total_cents)
        db.session.flush()

    current_app.logger.info(
        "Registered credit payment %s org=%s sale=%s amount_cents=%s status=%s",
        payment.receipt_number,
        org_id,
        sale_id,
        payment.amount_cents,
        sale.credit_status,
    )
    return payment
