# Overview: Pytest coverage for per-tenant receipt and invoice numbering.

import pytest

from fiado.errors import ConflictError
from fiado.models import InvoiceSequence, PaymentReceiptSequence
from fiado.services import sequence_service
from fiado.services.concurrency import atomic
from fiado.services.tenant_service import create_organization


class TestSequenceFormatting:
    def test_zero_padded(self):
        assert sequence_service.format_sequence_number("REC", 1) == "REC-00001"
        assert sequence_service.format_sequence_number("FAC", 42) == "FAC-00042"

    def test_wider_numbers_are_not_truncated(self):
        assert sequence_service.format_sequence_number("REC", 123456) == "REC-123456"


class TestProvisioning:
    def test_tenant_creation_provisions_both_sequences(self, db_session, org_a):
        receipt = db_session.query(PaymentReceiptSequence).filter_by(org_id=org_a.id).one()
        invoice = db_session.query(InvoiceSequence).filter_by(org_id=org_a.id).one()

        assert (receipt.prefix, receipt.current_number) == ("REC", 0)
        assert (invoice.prefix, invoice.current_number) == ("FAC", 0)

    def test_custom_prefixes(self, db_session):
        org = create_organization("Tienda C", "TIENDA_C", receipt_prefix="RC", invoice_prefix="FV")
        with atomic():
            assert sequence_service.next_receipt_number(org.id) == "RC-00001"
            assert sequence_service.next_invoice_number(org.id) == "FV-00001"

    def test_provisioning_is_idempotent(self, db_session, org_a):
        with atomic():
            sequence_service.provision_sequences(org_a.id)
        assert db_session.query(PaymentReceiptSequence).filter_by(org_id=org_a.id).count() == 1

    def test_duplicate_org_code_rejected(self, db_session, org_a):
        with pytest.raises(ConflictError):
            create_organization("Otra tienda", "tienda_a")

    def test_missing_row_is_provisioned_on_first_allocation(self, db_session, org_a):
        db_session.query(PaymentReceiptSequence).filter_by(org_id=org_a.id).delete()
        db_session.commit()

        with atomic():
            number = sequence_service.next_receipt_number(org_a.id)

        assert number == "REC-00001"
        assert db_session.query(PaymentReceiptSequence).filter_by(org_id=org_a.id).one().current_number == 1


class TestAllocation:
    def test_consecutive_numbers(self, db_session, org_a):
        with atomic():
            numbers = [sequence_service.next_receipt_number(org_a.id) for _ in range(3)]
        assert numbers == ["REC-00001", "REC-00002", "REC-00003"]

    def test_receipts_and_invoices_are_independent(self, db_session, org_a):
        with atomic():
            sequence_service.next_invoice_number(org_a.id)
            sequence_service.next_invoice_number(org_a.id)
            assert sequence_service.next_receipt_number(org_a.id) == "REC-00001"

    def test_rolled_back_allocation_is_reused(self, db_session, org_a):
        with pytest.raises(RuntimeError):
            with atomic():
                sequence_service.next_receipt_number(org_a.id)
                raise RuntimeError("abort")

        with atomic():
            assert sequence_service.next_receipt_number(org_a.id) == "REC-00001"

    def test_requires_org(self, db_session):
        with pytest.raises(sequence_service.SequenceError):
            sequence_service.next_receipt_number(None)

    def test_credit_sales_take_invoice_numbers(self, db_session, org_a, customer_a, credit_sale_a):
        assert credit_sale_a.invoice_number == "FAC-00001"
