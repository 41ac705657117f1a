# Overview: Operational error hierarchy shared by ledger services and routes.

"""
Ledger errors.

Every error raised on purpose by a service carries the HTTP status the
route layer answers with. Anything that is not a LedgerError is treated as
an internal failure and never shown to the client.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for expected, client-visible failures."""

    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(LedgerError):
    """Unknown sale, credit or customer for the current tenant."""

    status_code = 404


class InvalidStateError(LedgerError):
    """Operation not allowed in the record's current state (e.g. voided sale)."""


class InvalidAmountError(LedgerError):
    """Payment amount is zero or negative."""


class ExceedsBalanceError(LedgerError):
    """Payment amount is greater than the remaining balance of the credit."""

    def __init__(self, message: str, *, remaining_cents: int):
        super().__init__(message)
        self.remaining_cents = remaining_cents


class ConflictError(LedgerError):
    """Business rule conflict such as a duplicate customer document id."""

    status_code = 409
