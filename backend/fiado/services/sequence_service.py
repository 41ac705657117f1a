# Overview: Service-layer operations for per-tenant receipt and invoice numbering.

"""
Per-tenant number sequences.

Each organization owns one PaymentReceiptSequence row and one
InvoiceSequence row. Allocation locks the row, increments current_number
and formats "{prefix}-{number:05d}". Allocation never commits: it runs
inside the caller's transaction, so a rolled-back payment also rolls back
its receipt number and the sequence stays gap-free.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PaymentReceiptSequence, InvoiceSequence
from .concurrency import claim_write_lock, lock_for_update


SEQUENCE_PAD = 5


class SequenceError(Exception):
    """Raised when sequence operations fail."""
    pass


def format_sequence_number(prefix: str, number: int) -> str:
    return f"{prefix}-{number:0{SEQUENCE_PAD}d}"


def _default_prefix(model) -> str:
    if model is PaymentReceiptSequence:
        return current_app.config.get("RECEIPT_PREFIX", "REC")
    return current_app.config.get("INVOICE_PREFIX", "FAC")


def _lock_sequence(model, org_id: int):
    return lock_for_update(db.session.query(model).filter_by(org_id=org_id)).first()


def _provision_locked(model, org_id: int):
    """
    Create a missing sequence row inside the current transaction.

    Tenants get their rows at creation time; this covers tenants created
    before sequences existed. A concurrent provisioner losing the unique
    race falls back to locking the winner's row.
    """
    current_app.logger.warning(
        "Provisioning missing %s for org %s", model.__tablename__, org_id
    )
    try:
        with db.session.begin_nested():
            db.session.add(model(org_id=org_id, prefix=_default_prefix(model), current_number=0))
    except IntegrityError:
        pass
    seq = _lock_sequence(model, org_id)
    if seq is None:
        raise SequenceError(f"Could not provision {model.__tablename__} for org {org_id}")
    return seq


def _allocate(model, org_id: int) -> str:
    if not org_id:
        raise SequenceError("org_id is required")

    claim_write_lock(model, model.org_id == org_id)
    seq = _lock_sequence(model, org_id)
    if seq is None:
        seq = _provision_locked(model, org_id)

    seq.current_number = seq.current_number + 1
    db.session.flush()
    return format_sequence_number(seq.prefix, seq.current_number)


def next_receipt_number(org_id: int) -> str:
    """Allocate the next credit payment receipt number for a tenant."""
    return _allocate(PaymentReceiptSequence, org_id)


def next_invoice_number(org_id: int) -> str:
    """Allocate the next sale invoice number for a tenant."""
    return _allocate(InvoiceSequence, org_id)


def provision_sequences(
    org_id: int,
    *,
    receipt_prefix: str | None = None,
    invoice_prefix: str | None = None,
) -> None:
    """
    Idempotently create the tenant's sequence rows at zero.

    Flushes only; the caller commits together with the tenant record.
    """
    wanted = (
        (PaymentReceiptSequence, receipt_prefix),
        (InvoiceSequence, invoice_prefix),
    )
    for model, prefix in wanted:
        exists = db.session.query(model.id).filter_by(org_id=org_id).first()
        if exists:
            continue
        db.session.add(model(
            org_id=org_id,
            prefix=prefix or _default_prefix(model),
            current_number=0,
        ))
    db.session.flush()
