from .auth import User, SessionToken, USER_ROLES
from .ledger import (
    Transaction,
    ArchivedTransaction,
    PAYMENT_TYPES,
    TEXT_FIELDS,
    AMOUNT_FIELDS,
    EDITABLE_FIELDS,
)

__all__ = [
    'User', 'SessionToken', 'USER_ROLES',
    'Transaction', 'ArchivedTransaction',
    'PAYMENT_TYPES', 'TEXT_FIELDS', 'AMOUNT_FIELDS', 'EDITABLE_FIELDS',
]
