# Overview: Service-layer aggregation of customer credit exposure.

"""
Customer Balance Aggregator

Balances are derived, never stored:

    total_credit = sum(total of COMPLETED store-credit sales of the customer)
    total_paid   = sum(amount of every credit payment of the customer)
    balance      = total_credit - total_paid

The sums are correlated subqueries keyed by customer_id only; tenant
scoping is applied by the caller on the outer customer selection. The same
column expressions back customer listings, lookups and the delete guard.
"""

from __future__ import annotations

from sqlalchemy import func, select

from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer, Sale, CreditPayment
from ..models.sales import PAYMENT_METHOD_CREDIT, SALE_STATUS_COMPLETED


def _total_credit_expr():
    return (
        select(func.coalesce(func.sum(Sale.total_cents), 0))
        .where(
            Sale.customer_id == Customer.id,
            Sale.payment_method == PAYMENT_METHOD_CREDIT,
            Sale.status == SALE_STATUS_COMPLETED,
        )
        .correlate(Customer)
        .scalar_subquery()
    )


def _total_paid_expr():
    return (
        select(func.coalesce(func.sum(CreditPayment.amount_cents), 0))
        .where(CreditPayment.customer_id == Customer.id)
        .correlate(Customer)
        .scalar_subquery()
    )


def customer_balance_columns():
    """Labeled (total_credit_cents, total_paid_cents, balance_cents) columns."""
    total_credit = _total_credit_expr()
    total_paid = _total_paid_expr()
    return (
        total_credit.label("total_credit_cents"),
        total_paid.label("total_paid_cents"),
        (total_credit - total_paid).label("balance_cents"),
    )


def customers_with_balance_query(org_id: int):
    """Query yielding (Customer, total_credit_cents, total_paid_cents, balance_cents) for a tenant."""
    return db.session.query(Customer, *customer_balance_columns()).filter(Customer.org_id == org_id)


def balance_fields(customer: Customer, total_credit, total_paid, balance) -> dict:
    """Normalize one aggregated row into the balance dict returned by the API."""
    total_credit = int(total_credit or 0)
    total_paid = int(total_paid or 0)
    balance = int(balance or 0)
    limit = customer.credit_limit_cents or 0
    return {
        "total_credit_cents": total_credit,
        "total_paid_cents": total_paid,
        "balance_cents": balance,
        "credit_limit_cents": limit,
        "available_credit_cents": (limit - balance) if limit > 0 else None,
    }


def get_customer_with_balance(org_id: int, customer_id: int) -> tuple[Customer, dict]:
    row = customers_with_balance_query(org_id).filter(Customer.id == customer_id).first()
    if row is None:
        raise NotFoundError("Customer not found")
    customer, total_credit, total_paid, balance = row
    return customer, balance_fields(customer, total_credit, total_paid, balance)


def get_customer_balance(org_id: int, customer_id: int) -> dict:
    """Balance summary for one customer of the tenant."""
    _, balance = get_customer_with_balance(org_id, customer_id)
    return balance
