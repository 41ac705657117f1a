"""
Multi-Tenant Service: tenant provisioning and request scoping helpers.

Every ledger query is filtered by the org_id taken from the authenticated
session (g.org_id), never from client input.
"""

from __future__ import annotations

from flask import g

from ..errors import ConflictError
from ..extensions import db
from ..models import Organization
from ..validation import ValidationError
from .concurrency import atomic
from .sequence_service import provision_sequences


class TenantAccessError(Exception):
    """Raised when no tenant context is available."""
    pass


def get_current_org_id() -> int:
    """
    Get current tenant's org_id from Flask g context.

    Raises TenantAccessError if org_id not set.
    """
    if not hasattr(g, 'org_id') or g.org_id is None:
        raise TenantAccessError("Tenant context not established")
    return g.org_id


def get_organization_by_code(code: str) -> Organization | None:
    if not code:
        return None
    return db.session.query(Organization).filter_by(code=code.strip().upper()).first()


def create_organization(
    name: str,
    code: str | None = None,
    *,
    receipt_prefix: str | None = None,
    invoice_prefix: str | None = None,
) -> Organization:
    """
    Create a tenant together with its receipt and invoice sequences.

    Provisioning the sequences here means payment registration always finds
    a sequence row to lock.
    """
    if not name or not name.strip():
        raise ValidationError("name is required")
    code = code.strip().upper() if code else None

    with atomic():
        if code and get_organization_by_code(code):
            raise ConflictError(f"Organization with code '{code}' already exists")

        org = Organization(name=name.strip(), code=code, is_active=True)
        db.session.add(org)
        db.session.flush()
        provision_sequences(org.id, receipt_prefix=receipt_prefix, invoice_prefix=invoice_prefix)

    return org
