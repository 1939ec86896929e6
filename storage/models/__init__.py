"""
Storage Models Package.

============================================================
MODEL ORGANIZATION
============================================================

Accounts (accounts.py)
- User

Ledgers (ledger.py)
- CashTransaction
- Order

Settings (settings.py)
- Setting

============================================================
"""

from storage.models.base import Base, TimestampMixin, ValueEnum
from storage.models.accounts import Gender, User, UserRole, UserStatus
from storage.models.ledger import (
    CashTransaction,
    Order,
    OrderStatus,
    OrderType,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
)
from storage.models.settings import Setting


__all__ = [
    "Base",
    "TimestampMixin",
    "ValueEnum",
    "Gender",
    "User",
    "UserRole",
    "UserStatus",
    "CashTransaction",
    "Order",
    "OrderStatus",
    "OrderType",
    "PaymentMethod",
    "TransactionStatus",
    "TransactionType",
    "Setting",
]
