"""
Ledger Repositories.

============================================================
PURPOSE
============================================================
The Ledger Store: append cash transactions and orders,
transition their status, and query them by user, status and
time window.

============================================================
RULES
============================================================
- type and status writes are validated against their enums
- a COMPLETED cash transaction only accepts audit-field writes
- each write touches one record; there is no cross-ledger
  transaction

============================================================
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storage.models.ledger import (
    CashTransaction,
    Order,
    OrderStatus,
    OrderType,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
)
from storage.repositories.base import BaseRepository
from storage.repositories.exceptions import ImmutableRecordError, ValidationError


ZERO = Decimal("0")

# Writable on a COMPLETED cash transaction
AUDIT_FIELDS = frozenset({
    "approved_by",
    "approved_at",
    "rejected_by",
    "rejected_at",
    "rejection_reason",
})


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


# ============================================================
# CASH TRANSACTIONS
# ============================================================

class CashTransactionRepository(BaseRepository[CashTransaction]):
    """Repository for deposits and withdrawals."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, CashTransaction, "CashTransactionRepository")

    def create(
        self,
        user_id: uuid.UUID,
        type: Any,
        amount: Any,
        status: Any = TransactionStatus.PENDING,
        payment_method: Optional[Any] = None,
        reason: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> CashTransaction:
        """
        Append a cash transaction.

        Raises:
            InvalidEnumValueError: type, status or payment method invalid
            ValidationError: amount not positive
        """
        amount = _as_decimal(amount)
        if amount <= ZERO:
            raise ValidationError(self.repository_name, "create", "amount", "must be positive")

        txn = CashTransaction(
            user_id=user_id,
            type=self._validate_enum("type", type, TransactionType.values(), "create"),
            amount=amount,
            status=self._validate_enum("status", status, TransactionStatus.values(), "create"),
            payment_method=(
                self._validate_enum("payment_method", payment_method, PaymentMethod.values(), "create")
                if payment_method is not None else None
            ),
            reason=reason,
        )
        if timestamp is not None:
            txn.timestamp = timestamp
        return self._add(txn)

    def get_or_raise(self, transaction_id: uuid.UUID) -> CashTransaction:
        return self._get_by_id_or_raise(transaction_id)

    def update(self, txn: CashTransaction, **changes: Any) -> CashTransaction:
        """
        Transition status and/or write audit fields.

        Raises:
            InvalidEnumValueError: status invalid
            ImmutableRecordError: non-audit change on a COMPLETED record
        """
        if "status" in changes:
            changes["status"] = self._validate_enum(
                "status", changes["status"], TransactionStatus.values(), "update"
            )

        locked = {
            field for field, value in changes.items()
            if field not in AUDIT_FIELDS and getattr(txn, field) != value
        }
        if txn.status == TransactionStatus.COMPLETED.value and locked:
            raise ImmutableRecordError(self.repository_name, txn.id, "update", locked)

        for field, value in changes.items():
            setattr(txn, field, value)
        self._flush("update", txn.id)
        return txn

    def list_for_user(
        self,
        user_id: uuid.UUID,
        status: Optional[Any] = None,
        type: Optional[Any] = None,
    ) -> List[CashTransaction]:
        """A user's transactions, newest first."""
        stmt = select(CashTransaction).where(CashTransaction.user_id == user_id)
        if status is not None:
            stmt = stmt.where(CashTransaction.status == self._validate_enum(
                "status", status, TransactionStatus.values(), "query"))
        if type is not None:
            stmt = stmt.where(CashTransaction.type == self._validate_enum(
                "type", type, TransactionType.values(), "query"))
        stmt = stmt.order_by(CashTransaction.timestamp.desc())
        return self._execute_query(stmt)

    def recent(self, type: Any, limit: int = 10) -> List[CashTransaction]:
        """Latest transactions of a type across all users."""
        stmt = (
            select(CashTransaction)
            .where(CashTransaction.type == self._validate_enum("type", type, TransactionType.values(), "query"))
            .order_by(CashTransaction.timestamp.desc())
            .limit(limit)
        )
        return self._execute_query(stmt)

    def sum_amount(
        self,
        type: Any,
        status: Any,
        user_id: Optional[uuid.UUID] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> Decimal:
        """Sum of amount over matching rows; zero when none match."""
        stmt = select(func.coalesce(func.sum(CashTransaction.amount), 0)).where(
            *self._criteria(type, status, user_id, since, until)
        )
        return _as_decimal(self._execute_scalar(stmt))

    def count_matching(
        self,
        type: Any,
        status: Any,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> int:
        return self._count(*self._criteria(type, status, None, since, until))

    def user_ids_active_between(self, start: datetime, end: Optional[datetime] = None) -> Set[uuid.UUID]:
        """Users with any cash movement in the window."""
        stmt = select(CashTransaction.user_id).where(CashTransaction.timestamp >= start)
        if end is not None:
            stmt = stmt.where(CashTransaction.timestamp < end)
        stmt = stmt.distinct()
        return {row[0] for row in self._execute_rows(stmt)}

    def last_timestamps(self, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, datetime]:
        """Date of each user's latest cash transaction."""
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        stmt = (
            select(CashTransaction.user_id, func.max(CashTransaction.timestamp))
            .where(CashTransaction.user_id.in_(user_ids))
            .group_by(CashTransaction.user_id)
        )
        return {row[0]: row[1] for row in self._execute_rows(stmt)}

    def _criteria(self, type, status, user_id, since, until) -> List[Any]:
        criteria = [
            CashTransaction.type == self._validate_enum("type", type, TransactionType.values(), "query"),
            CashTransaction.status == self._validate_enum("status", status, TransactionStatus.values(), "query"),
        ]
        if user_id is not None:
            criteria.append(CashTransaction.user_id == user_id)
        if since is not None:
            criteria.append(CashTransaction.timestamp >= since)
        if until is not None:
            criteria.append(CashTransaction.timestamp < until)
        return criteria


# ============================================================
# ORDERS
# ============================================================

class OrderRepository(BaseRepository[Order]):
    """Repository for trade orders."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, Order, "OrderRepository")

    def add(self, order: Order) -> Order:
        """
        Append an order built by the position service.

        Raises:
            InvalidEnumValueError: type or status invalid
        """
        self._check_enums(order, "create")
        return self._add(order)

    def save(self, order: Order) -> Order:
        """Flush edits to an existing order."""
        self._check_enums(order, "update")
        self._flush("update", order.id)
        return order

    def get_or_raise(self, order_id: uuid.UUID) -> Order:
        return self._get_by_id_or_raise(order_id)

    def list_for_user(self, user_id: uuid.UUID, status: Optional[Any] = None) -> List[Order]:
        """A user's orders, newest first."""
        stmt = select(Order).where(Order.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Order.status == self._validate_enum(
                "status", status, OrderStatus.values(), "query"))
        stmt = stmt.order_by(Order.trade_date.desc())
        return self._execute_query(stmt)

    def sum_trade_amount(self, user_id: uuid.UUID, status: Any = OrderStatus.OPEN) -> Decimal:
        stmt = select(func.coalesce(func.sum(Order.trade_amount), 0)).where(
            Order.user_id == user_id,
            Order.status == self._validate_enum("status", status, OrderStatus.values(), "query"),
        )
        return _as_decimal(self._execute_scalar(stmt))

    def sum_profit_loss(self, user_id: uuid.UUID, status: Any = OrderStatus.CLOSED) -> Decimal:
        """Sum of profit_loss; rows without one count as zero."""
        stmt = select(func.coalesce(func.sum(func.coalesce(Order.profit_loss, 0)), 0)).where(
            Order.user_id == user_id,
            Order.status == self._validate_enum("status", status, OrderStatus.values(), "query"),
        )
        return _as_decimal(self._execute_scalar(stmt))

    def _check_enums(self, order: Order, operation: str) -> None:
        order.type = self._validate_enum("type", order.type, OrderType.values(), operation)
        order.status = self._validate_enum("status", order.status, OrderStatus.values(), operation)
