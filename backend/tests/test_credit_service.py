# Overview: Pytest coverage for the store credit ledger service.

"""
Credit Ledger Tests

Covers payment registration, derived credit status, listings, the
accounts-receivable summary and tenant isolation of every read and write.
"""

from datetime import timedelta

import pytest

from fiado.errors import (
    ExceedsBalanceError,
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
)
from fiado.models import CreditPayment, PaymentReceiptSequence, Sale
from fiado.models.sales import (
    CREDIT_STATUS_PAID,
    CREDIT_STATUS_PARTIAL,
    CREDIT_STATUS_PENDING,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_TRANSFER,
)
from fiado.services import credit_service, sales_service
from fiado.time_utils import utcnow
from fiado.validation import ValidationError

from conftest import make_credit_sale, make_customer


def _payments_for(db_session, sale_id):
    return db_session.query(CreditPayment).filter_by(sale_id=sale_id).all()


def _receipt_counter(db_session, org_id):
    return db_session.query(PaymentReceiptSequence).filter_by(org_id=org_id).one().current_number


class TestDeriveCreditStatus:
    def test_nothing_paid_is_pending(self):
        assert credit_service.derive_credit_status(0, 1000) == CREDIT_STATUS_PENDING

    def test_partial_payment(self):
        assert credit_service.derive_credit_status(1, 1000) == CREDIT_STATUS_PARTIAL
        assert credit_service.derive_credit_status(999, 1000) == CREDIT_STATUS_PARTIAL

    def test_fully_paid(self):
        assert credit_service.derive_credit_status(1000, 1000) == CREDIT_STATUS_PAID


class TestCreditLifecycle:
    """Pending -> partial -> paid on a 100,000.00 credit."""

    def test_new_credit_is_pending(self, db_session, org_a, credit_sale_a):
        detail = credit_service.get_credit_detail(org_a.id, credit_sale_a.id)

        assert detail["status"] == CREDIT_STATUS_PENDING
        assert detail["total_amount_cents"] == 10_000_000
        assert detail["paid_amount_cents"] == 0
        assert detail["remaining_balance_cents"] == 10_000_000
        assert detail["payments"] == []

    def test_partial_then_full_payment(self, db_session, org_a, credit_sale_a):
        payment = credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=4_000_000, payment_method="efectivo"
        )
        assert payment.amount_cents == 4_000_000
        assert payment.payment_method == PAYMENT_METHOD_CASH
        assert payment.receipt_number == "REC-00001"
        assert payment.created_at is not None

        detail = credit_service.get_credit_detail(org_a.id, credit_sale_a.id)
        assert detail["status"] == CREDIT_STATUS_PARTIAL
        assert detail["paid_amount_cents"] == 4_000_000
        assert detail["remaining_balance_cents"] == 6_000_000

        credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=6_000_000, payment_method="TRANSFER"
        )
        detail = credit_service.get_credit_detail(org_a.id, credit_sale_a.id)
        assert detail["status"] == CREDIT_STATUS_PAID
        assert detail["paid_amount_cents"] == 10_000_000
        assert detail["remaining_balance_cents"] == 0
        assert [p["receipt_number"] for p in detail["payments"]] == ["REC-00002", "REC-00001"]

        with pytest.raises(ExceedsBalanceError) as exc_info:
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=100, payment_method="CASH"
            )
        assert exc_info.value.remaining_cents == 0
        assert len(_payments_for(db_session, credit_sale_a.id)) == 2

    def test_repeated_reads_agree(self, db_session, org_a, credit_sale_a):
        credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=1_234_500, payment_method="CASH"
        )

        first = credit_service.get_credit_detail(org_a.id, credit_sale_a.id)
        second = credit_service.get_credit_detail(org_a.id, credit_sale_a.id)

        for key in ("paid_amount_cents", "remaining_balance_cents", "status"):
            assert first[key] == second[key]
        assert first["payments"] == second["payments"]

    def test_sale_cache_follows_payment_log(self, db_session, org_a, credit_sale_a):
        credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=2_500_000, payment_method="CARD"
        )

        sale = db_session.get(Sale, credit_sale_a.id)
        logged = sum(p.amount_cents for p in _payments_for(db_session, sale.id))
        assert sale.amount_paid_cents == logged == 2_500_000
        assert sale.credit_status == CREDIT_STATUS_PARTIAL

    def test_exact_remaining_balance_marks_paid(self, db_session, org_a, credit_sale_a):
        credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=9_999_999, payment_method="CASH"
        )
        assert credit_service.get_credit_detail(org_a.id, credit_sale_a.id)["status"] == CREDIT_STATUS_PARTIAL

        credit_service.register_payment(org_a.id, credit_sale_a.id, amount_cents=1, payment_method="CASH")
        assert credit_service.get_credit_detail(org_a.id, credit_sale_a.id)["status"] == CREDIT_STATUS_PAID

    def test_overpayment_reports_remaining_balance(self, db_session, org_a, credit_sale_a):
        credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=4_000_000, payment_method="CASH"
        )

        with pytest.raises(ExceedsBalanceError) as exc_info:
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=6_000_001, payment_method="CASH"
            )
        assert exc_info.value.remaining_cents == 6_000_000
        assert "$60,000" in str(exc_info.value)
        assert len(_payments_for(db_session, credit_sale_a.id)) == 1


class TestPaymentValidation:
    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount_touches_nothing(self, db_session, org_a, credit_sale_a, amount):
        with pytest.raises(InvalidAmountError):
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=amount, payment_method="CASH"
            )
        assert _payments_for(db_session, credit_sale_a.id) == []
        assert _receipt_counter(db_session, org_a.id) == 0

    @pytest.mark.parametrize("amount", [12.5, "100", True])
    def test_amount_must_be_integer_cents(self, db_session, org_a, credit_sale_a, amount):
        with pytest.raises(ValidationError):
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=amount, payment_method="CASH"
            )

    @pytest.mark.parametrize("method", ["CREDIT", "cheque", "", None])
    def test_rejects_unpayable_methods(self, db_session, org_a, credit_sale_a, method):
        with pytest.raises(ValidationError):
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=1000, payment_method=method
            )

    def test_payment_method_aliases(self):
        assert credit_service.normalize_payment_method("Tarjeta") == "CARD"
        assert credit_service.normalize_payment_method("transferencia") == PAYMENT_METHOD_TRANSFER
        assert credit_service.normalize_payment_method(" cash ") == PAYMENT_METHOD_CASH

    def test_notes_are_trimmed_and_bounded(self, db_session, org_a, credit_sale_a):
        payment = credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH", notes="  abono semanal  "
        )
        assert payment.notes == "abono semanal"

        with pytest.raises(ValidationError):
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH",
                notes="x" * (credit_service.NOTES_MAX_LENGTH + 1),
            )

    def test_unknown_sale(self, db_session, org_a):
        with pytest.raises(NotFoundError):
            credit_service.register_payment(org_a.id, 999999, amount_cents=1000, payment_method="CASH")

    def test_cash_sale_is_not_a_credit(self, db_session, org_a, customer_a):
        sale = Sale(
            org_id=org_a.id,
            invoice_number="CASH-1",
            customer_id=customer_a.id,
            subtotal_cents=5000,
            total_cents=5000,
            payment_method=PAYMENT_METHOD_CASH,
            amount_paid_cents=5000,
        )
        db_session.add(sale)
        db_session.commit()

        with pytest.raises(NotFoundError):
            credit_service.register_payment(org_a.id, sale.id, amount_cents=1000, payment_method="CASH")
        with pytest.raises(NotFoundError):
            credit_service.get_credit_detail(org_a.id, sale.id)

    def test_voided_sale_rejects_payments(self, db_session, org_a, user_a, credit_sale_a):
        sales_service.void_sale(org_a.id, credit_sale_a.id, operator_id=user_a.id, reason="Wrong customer")

        with pytest.raises(InvalidStateError):
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH"
            )
        assert _payments_for(db_session, credit_sale_a.id) == []
        assert _receipt_counter(db_session, org_a.id) == 0


class TestAtomicity:
    def test_failure_after_receipt_allocation_rolls_everything_back(
        self, db_session, org_a, credit_sale_a, monkeypatch
    ):
        def boom(*_args, **_kwargs):
            raise RuntimeError("status cache write failed")

        monkeypatch.setattr(credit_service, "derive_credit_status", boom)

        with pytest.raises(RuntimeError):
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH"
            )

        monkeypatch.undo()

        assert _payments_for(db_session, credit_sale_a.id) == []
        assert _receipt_counter(db_session, org_a.id) == 0
        sale = db_session.get(Sale, credit_sale_a.id)
        assert sale.amount_paid_cents == 0
        assert sale.credit_status == CREDIT_STATUS_PENDING

        payment = credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH"
        )
        assert payment.receipt_number == "REC-00001"

    def test_failed_payments_leave_no_receipt_gaps(self, db_session, org_a, credit_sale_a):
        credit_service.register_payment(org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH")
        with pytest.raises(ExceedsBalanceError):
            credit_service.register_payment(
                org_a.id, credit_sale_a.id, amount_cents=20_000_000, payment_method="CASH"
            )
        second = credit_service.register_payment(
            org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH"
        )
        assert second.receipt_number == "REC-00002"


class TestTenantIsolation:
    def test_payment_on_foreign_sale_is_not_found(self, db_session, org_a, org_b, credit_sale_a):
        with pytest.raises(NotFoundError):
            credit_service.register_payment(
                org_b.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH"
            )
        assert _payments_for(db_session, credit_sale_a.id) == []
        assert _receipt_counter(db_session, org_b.id) == 0

    def test_detail_and_history_are_tenant_scoped(self, db_session, org_a, org_b, credit_sale_a):
        credit_service.register_payment(org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH")

        with pytest.raises(NotFoundError):
            credit_service.get_credit_detail(org_b.id, credit_sale_a.id)
        with pytest.raises(NotFoundError):
            credit_service.get_payment_history(org_b.id, credit_sale_a.id)

        history = credit_service.get_payment_history(org_a.id, credit_sale_a.id)
        assert len(history) == 1

    def test_receipt_numbers_are_per_tenant(self, db_session, org_a, org_b, credit_sale_a, credit_sale_b):
        pa = credit_service.register_payment(org_a.id, credit_sale_a.id, amount_cents=1000, payment_method="CASH")
        pb = credit_service.register_payment(org_b.id, credit_sale_b.id, amount_cents=1000, payment_method="CASH")
        assert pa.receipt_number == "REC-00001"
        assert pb.receipt_number == "REC-00001"

    def test_listing_and_summary_ignore_other_tenants(self, db_session, org_a, org_b, credit_sale_a, credit_sale_b):
        listing = credit_service.find_all_pending_credits(org_a.id)
        assert [c["sale"]["id"] for c in listing["data"]] == [credit_sale_a.id]

        summary = credit_service.get_summary(org_b.id)
        assert summary["total_pending_cents"] == 5_000_000
        assert summary["total_credits"] == 1


class TestListing:
    def test_lists_open_credits_newest_first(self, db_session, org_a, customer_a):
        first = make_credit_sale(org_a.id, customer_a.id, 100_000)
        second = make_credit_sale(org_a.id, customer_a.id, 200_000)
        paid = make_credit_sale(org_a.id, customer_a.id, 300_000)
        credit_service.register_payment(org_a.id, paid.id, amount_cents=300_000, payment_method="CASH")

        result = credit_service.find_all_pending_credits(org_a.id)

        assert [c["sale"]["id"] for c in result["data"]] == [second.id, first.id]
        assert result["pagination"] == {"page": 1, "limit": 10, "total": 2, "total_pages": 1}

    def test_all_filter_means_open_credits(self, db_session, org_a, customer_a):
        make_credit_sale(org_a.id, customer_a.id, 100_000)
        paid = make_credit_sale(org_a.id, customer_a.id, 300_000)
        credit_service.register_payment(org_a.id, paid.id, amount_cents=300_000, payment_method="CASH")

        assert credit_service.find_all_pending_credits(org_a.id, status="all")["pagination"]["total"] == 1
        paid_only = credit_service.find_all_pending_credits(org_a.id, status="pagado")
        assert [c["sale"]["id"] for c in paid_only["data"]] == [paid.id]

    def test_status_filter_partial(self, db_session, org_a, customer_a):
        make_credit_sale(org_a.id, customer_a.id, 100_000)
        partial = make_credit_sale(org_a.id, customer_a.id, 200_000)
        credit_service.register_payment(org_a.id, partial.id, amount_cents=50_000, payment_method="CASH")

        result = credit_service.find_all_pending_credits(org_a.id, status="PARTIAL")
        assert [c["sale"]["id"] for c in result["data"]] == [partial.id]
        assert result["data"][0]["remaining_balance_cents"] == 150_000

    def test_invalid_status_filter(self, db_session, org_a):
        with pytest.raises(ValidationError):
            credit_service.find_all_pending_credits(org_a.id, status="overdue")

    def test_customer_filter(self, db_session, org_a, customer_a):
        other = make_customer(org_a.id, "555", "Pedro Perez")
        make_credit_sale(org_a.id, customer_a.id, 100_000)
        theirs = make_credit_sale(org_a.id, other.id, 100_000)

        result = credit_service.find_all_pending_credits(org_a.id, customer_id=str(other.id))
        assert [c["sale"]["id"] for c in result["data"]] == [theirs.id]

    def test_pagination_total_is_independent_of_page(self, db_session, org_a, customer_a):
        for _ in range(5):
            make_credit_sale(org_a.id, customer_a.id, 100_000)

        page_3 = credit_service.find_all_pending_credits(org_a.id, page=3, limit=2)
        assert len(page_3["data"]) == 1
        assert page_3["pagination"] == {"page": 3, "limit": 2, "total": 5, "total_pages": 3}

        beyond = credit_service.find_all_pending_credits(org_a.id, page=10, limit=2)
        assert beyond["data"] == []
        assert beyond["pagination"]["total"] == 5

    def test_voided_credits_are_hidden(self, db_session, org_a, user_a, credit_sale_a):
        sales_service.void_sale(org_a.id, credit_sale_a.id, operator_id=user_a.id, reason="Duplicated")
        assert credit_service.find_all_pending_credits(org_a.id)["data"] == []


class TestSummary:
    def test_summary_of_two_pending_credits(self, db_session, org_a, customer_a):
        first = make_credit_sale(org_a.id, customer_a.id, 100_000)
        make_credit_sale(org_a.id, customer_a.id, 200_000)
        credit_service.register_payment(org_a.id, first.id, amount_cents=50_000, payment_method="CASH")

        summary = credit_service.get_summary(org_a.id)

        assert summary["total_pending_cents"] == 250_000
        assert summary["total_credits"] == 2
        assert summary["customers_with_debt"] == 1
        assert summary["overdue_credits"] == 0

    def test_customers_with_debt_counts_distinct_customers(self, db_session, org_a, customer_a):
        other = make_customer(org_a.id, "555", "Pedro Perez")
        make_credit_sale(org_a.id, customer_a.id, 100_000)
        make_credit_sale(org_a.id, other.id, 200_000)

        assert credit_service.get_summary(org_a.id)["customers_with_debt"] == 2

    def test_paid_and_voided_credits_are_excluded(self, db_session, org_a, user_a, customer_a):
        paid = make_credit_sale(org_a.id, customer_a.id, 100_000)
        voided = make_credit_sale(org_a.id, customer_a.id, 200_000)
        credit_service.register_payment(org_a.id, paid.id, amount_cents=100_000, payment_method="CASH")
        credit_service.register_payment(org_a.id, voided.id, amount_cents=10_000, payment_method="CASH")
        sales_service.void_sale(org_a.id, voided.id, operator_id=user_a.id, reason="Returned goods")

        summary = credit_service.get_summary(org_a.id)
        assert summary == {
            "total_pending_cents": 0,
            "total_credits": 0,
            "customers_with_debt": 0,
            "overdue_credits": 0,
        }

    def test_overdue_credits(self, db_session, org_a, customer_a):
        late = make_credit_sale(org_a.id, customer_a.id, 100_000)
        make_credit_sale(org_a.id, customer_a.id, 100_000)
        late.due_date = utcnow().date() - timedelta(days=1)
        db_session.commit()

        assert credit_service.get_summary(org_a.id)["overdue_credits"] == 1
        detail = credit_service.get_credit_detail(org_a.id, late.id)
        assert detail["is_overdue"] is True
        assert detail["days_until_due"] == -1

    def test_due_date_defaults_to_credit_term(self, db_session, org_a, customer_a):
        sale = make_credit_sale(org_a.id, customer_a.id, 100_000)
        detail = credit_service.get_credit_detail(org_a.id, sale.id)
        assert detail["days_until_due"] == 30
        assert detail["is_overdue"] is False
