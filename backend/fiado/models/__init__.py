from .tenancy import Organization
from .auth import User, SessionToken
from .customers import Customer
from .sales import Sale, CreditPayment
from .sequences import PaymentReceiptSequence, InvoiceSequence

__all__ = [
    'Organization',
    'User', 'SessionToken',
    'Customer',
    'Sale', 'CreditPayment',
    'PaymentReceiptSequence', 'InvoiceSequence',
]
