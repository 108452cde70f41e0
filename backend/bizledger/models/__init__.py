from .auth import User, SessionToken
from .contacts import Contact, CONTACT_TYPES
from .inventory import Product
from .transactions import Transaction, TransactionLine, TRANSACTION_TYPES

__all__ = [
    'User', 'SessionToken',
    'Contact', 'CONTACT_TYPES',
    'Product',
    'Transaction', 'TransactionLine', 'TRANSACTION_TYPES',
]
