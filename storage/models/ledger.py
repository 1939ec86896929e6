"""
Ledger Domain ORM Models.

============================================================
PURPOSE
============================================================
The two ledgers a balance is derived from: cash movements
and trade orders.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Mutability: APPEND-MOSTLY (status transitions only)
- COMPLETED cash transactions are immutable except for the
  administrative audit fields
- No foreign key to users: ledgers outlive a deleted account

============================================================
MODELS
============================================================
- CashTransaction: deposits and withdrawals
- Order: trade positions

============================================================
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Index, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin, ValueEnum


# Money and prices
AMOUNT = Numeric(20, 8)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionType(ValueEnum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class TransactionStatus(ValueEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class PaymentMethod(ValueEnum):
    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    CARD = "CARD"
    OTHER = "OTHER"


class OrderType(ValueEnum):
    LONG = "LONG"
    SHORT = "SHORT"


class OrderStatus(ValueEnum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class CashTransaction(Base, TimestampMixin):
    """
    Cash movement.

    Only COMPLETED records count toward a balance.
    """

    __tablename__ = "cash_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TransactionStatus.PENDING.value)
    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="Requester note")
    timestamp: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, server_default=func.now())

    # Audit fields, writable after completion
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    rejected_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_cash_transactions_type_status_timestamp", "type", "status", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<CashTransaction(id={self.id}, {self.type} {self.amount} {self.status})>"


class Order(Base, TimestampMixin):
    """
    Trade position.

    ============================================================
    INVARIANTS
    ============================================================
    - trade_amount = quantity * buy_price
    - price_mid = buy_price
    - profit_loss set iff quantity, buy_price and sell_price set
    - current_price set only while the range is bounded

    ============================================================
    """

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    symbol: Mapped[str] = mapped_column(String(30), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    buy_price: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    sell_price: Mapped[Optional[Decimal]] = mapped_column(AMOUNT, nullable=True)
    trade_amount: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)

    price_low: Mapped[Optional[Decimal]] = mapped_column(AMOUNT, nullable=True)
    price_high: Mapped[Optional[Decimal]] = mapped_column(AMOUNT, nullable=True)
    price_mid: Mapped[Decimal] = mapped_column(AMOUNT, nullable=False)
    current_price: Mapped[Optional[Decimal]] = mapped_column(AMOUNT, nullable=True)

    profit_loss: Mapped[Optional[Decimal]] = mapped_column(AMOUNT, nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=OrderStatus.OPEN.value)
    trade_date: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, server_default=func.now())

    __table_args__ = (
        Index("ix_orders_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, {self.type} {self.symbol} {self.status})>"
