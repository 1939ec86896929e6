"""
Repository Layer.

Repositories are the only gateway to the database. Sessions
are injected; services own commit boundaries.
"""

from storage.repositories.ledger import CashTransactionRepository, OrderRepository
from storage.repositories.settings import SettingsRepository
from storage.repositories.users import UserRepository


__all__ = [
    "CashTransactionRepository",
    "OrderRepository",
    "SettingsRepository",
    "UserRepository",
]
