from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class PaymentReceiptSequence(db.Model):
    """
    Per-tenant counter for credit payment receipt numbers.

    One row per organization, provisioned with the tenant. Incremented
    exactly once per registered payment while the row is locked, which
    keeps receipt numbers gap-free and unique across server instances.
    """
    __tablename__ = "payment_receipt_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, unique=True, index=True)
    prefix = db.Column(db.String(16), nullable=False, default="REC")
    current_number = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "org_id": self.org_id,
            "prefix": self.prefix,
            "current_number": self.current_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceSequence(db.Model):
    """Per-tenant counter for sale invoice numbers (same locking rules as receipts)."""
    __tablename__ = "invoice_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, unique=True, index=True)
    prefix = db.Column(db.String(16), nullable=False, default="FAC")
    current_number = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "org_id": self.org_id,
            "prefix": self.prefix,
            "current_number": self.current_number,
            "updated_at": to_utc_z(self.updated_at),
        }
