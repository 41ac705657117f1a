# Overview: Service-layer operations for customers and their credit balances.

from __future__ import annotations

import math

from sqlalchemy import or_

from ..errors import ConflictError, InvalidStateError, NotFoundError
from ..extensions import db
from ..models import Customer, CreditPayment, Sale
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_customer,
    parse_pagination,
    validate_payload,
)
from .balance_service import balance_fields, customers_with_balance_query, get_customer_with_balance
from .concurrency import apply_lock_timeout, atomic, claim_write_lock, lock_for_update


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"document_id", "name", "phone", "email", "address", "credit_limit_cents", "notes"},
    required_on_create={"document_id", "name"},
)

SEARCH_RESULT_LIMIT = 10


def _serialize(row) -> dict:
    customer, total_credit, total_paid, balance = row
    data = customer.to_dict()
    data.update(balance_fields(customer, total_credit, total_paid, balance))
    return data


def _search_filter(term: str, *, include_email: bool):
    pattern = f"%{term}%"
    clauses = [
        Customer.name.ilike(pattern),
        Customer.phone.ilike(pattern),
        Customer.document_id.ilike(pattern),
    ]
    if include_email:
        clauses.append(Customer.email.ilike(pattern))
    return or_(*clauses)


def _ensure_document_available(org_id: int, document_id: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Customer.id).filter(
        Customer.org_id == org_id,
        Customer.document_id == document_id,
    )
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError("A customer with this document id already exists")


def list_customers(org_id: int, page=1, limit=10, search: str | None = None) -> dict:
    """Paginated customers of the tenant with their credit balances, newest first."""
    page, limit = parse_pagination(page, limit)

    count_query = db.session.query(Customer).filter(Customer.org_id == org_id)
    query = customers_with_balance_query(org_id)
    if search and search.strip():
        condition = _search_filter(search.strip(), include_email=True)
        count_query = count_query.filter(condition)
        query = query.filter(condition)

    total = count_query.count()
    rows = (
        query.order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "data": [_serialize(row) for row in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
    }


def search_customers(org_id: int, query_text: str) -> list[dict]:
    """Quick lookup by name, phone or document id for the checkout picker."""
    if not query_text or not query_text.strip():
        return []
    rows = (
        customers_with_balance_query(org_id)
        .filter(_search_filter(query_text.strip(), include_email=False))
        .order_by(Customer.name.asc())
        .limit(SEARCH_RESULT_LIMIT)
        .all()
    )
    return [_serialize(row) for row in rows]


def get_customer(org_id: int, customer_id: int) -> dict:
    customer, balance = get_customer_with_balance(org_id, customer_id)
    data = customer.to_dict()
    data.update(balance)
    return data


def create_customer(org_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    with atomic():
        _ensure_document_available(org_id, patch["document_id"])
        customer = Customer(org_id=org_id, **patch)
        if customer.credit_limit_cents is None:
            customer.credit_limit_cents = 0
        db.session.add(customer)
        db.session.flush()

    return customer


def update_customer(org_id: int, customer_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    enforce_rules_customer(patch)
    if patch.get("credit_limit_cents", 0) is None:
        patch["credit_limit_cents"] = 0

    with atomic():
        customer = db.session.query(Customer).filter_by(id=customer_id, org_id=org_id).first()
        if not customer:
            raise NotFoundError("Customer not found")
        if "document_id" in patch:
            _ensure_document_available(org_id, patch["document_id"], exclude_id=customer.id)
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.flush()

    return customer


def delete_customer(org_id: int, customer_id: int) -> None:
    """
    Delete a customer without outstanding debt.

    Raises InvalidStateError while the aggregated balance is positive.
    """
    with atomic():
        apply_lock_timeout()
        claim_write_lock(Customer, Customer.id == customer_id, Customer.org_id == org_id)
        locked = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, org_id=org_id)
        ).first()
        if not locked:
            raise NotFoundError("Customer not found")

        # Balance read under the customer lock; credit sales take the same lock
        customer, balance = get_customer_with_balance(org_id, customer_id)
        if balance["balance_cents"] > 0:
            raise InvalidStateError("Cannot delete a customer with a pending balance")

        # Settled history keeps its name/phone snapshot, only the link goes
        db.session.query(Sale).filter(Sale.customer_id == customer.id).update(
            {Sale.customer_id: None}, synchronize_session=False
        )
        db.session.query(CreditPayment).filter(CreditPayment.customer_id == customer.id).update(
            {CreditPayment.customer_id: None}, synchronize_session=False
        )
        db.session.delete(customer)
