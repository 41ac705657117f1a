from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


# Sale lifecycle
SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_VOIDED = "VOIDED"

# How the sale was settled at checkout
PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_CARD = "CARD"
PAYMENT_METHOD_TRANSFER = "TRANSFER"
PAYMENT_METHOD_CREDIT = "CREDIT"  # store credit ("fiado")

# Derived credit state (cached on the sale, source of truth is credit_payments)
CREDIT_STATUS_PENDING = "PENDING"
CREDIT_STATUS_PARTIAL = "PARTIAL"
CREDIT_STATUS_PAID = "PAID"


class Sale(db.Model):
    """
    Completed sale record.

    Monetary fields are fixed once the sale is completed. For store-credit
    sales (payment_method=CREDIT) the ledger maintains amount_paid_cents and
    credit_status as a transactional cache of the credit_payments log.

    Customer fields are a snapshot taken at sale time and are not updated
    when the customer record changes.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("org_id", "invoice_number", name="uq_sales_org_invoice"),
        # Pending-credit listings and the ledger summary
        db.Index("ix_sales_org_credit", "org_id", "payment_method", "status", "credit_status"),
        db.Index("ix_sales_org_created", "org_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    # Human-readable, tenant-scoped (e.g. "FAC-00042")
    invoice_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    # Amounts in cents
    subtotal_cents = db.Column(db.BigInteger, nullable=False, default=0)
    tax_cents = db.Column(db.BigInteger, nullable=False, default=0)
    discount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_cents = db.Column(db.BigInteger, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    amount_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)
    credit_status = db.Column(db.String(16), nullable=True, index=True)  # NULL for non-credit sales

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)
    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_credit(self) -> bool:
        return self.payment_method == PAYMENT_METHOD_CREDIT

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "amount_paid_cents": self.amount_paid_cents,
            "credit_status": self.credit_status,
            "status": self.status,
            "due_date": to_iso_date(self.due_date),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
        }


class CreditPayment(db.Model):
    """
    Partial payment ("abono") against a store-credit sale.

    IMMUTABLE: Rows are inserted once by the payment registration
    transaction and are never updated or deleted. The sum of amount_cents
    per sale never exceeds the sale total.
    """
    __tablename__ = "credit_payments"
    __table_args__ = (
        db.UniqueConstraint("org_id", "receipt_number", name="uq_credit_payments_org_receipt"),
        db.Index("ix_credit_payments_sale_created", "sale_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    amount_cents = db.Column(db.BigInteger, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)  # CASH, CARD, TRANSFER
    receipt_number = db.Column(db.String(64), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    sale = db.relationship("Sale", backref=db.backref("credit_payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "receipt_number": self.receipt_number,
            "notes": self.notes,
            "received_by_user_id": self.received_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
