"""
Accounting - Balance Aggregator.

============================================================
PURPOSE
============================================================
Pure computation of a user's balance from two ledger
snapshots. No I/O; the service layer supplies the totals.

============================================================
FORMULA
============================================================
baseBalance     = completed deposits - completed withdrawals
orderInvestment = sum(tradeAmount) over OPEN orders
realizedPnL     = sum(profitLoss) over CLOSED orders (missing = 0)
accountBalance  = baseBalance - orderInvestment + realizedPnL

Unrealized P&L on open positions is never part of a balance.

============================================================
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from storage.models.ledger import OrderStatus, TransactionStatus, TransactionType


ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a ledger amount; None counts as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def as_number(value: Optional[Decimal]) -> Optional[float]:
    """Render a Decimal for JSON."""
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class LedgerTotals:
    """The four sums a balance is composed from."""

    total_deposit: Decimal = ZERO
    total_withdrawals: Decimal = ZERO
    order_investment: Decimal = ZERO
    realized_pnl: Decimal = ZERO


@dataclass(frozen=True)
class BalanceSummary:
    """Balance of one account."""

    total_deposit: Decimal
    total_withdrawals: Decimal
    base_balance: Decimal
    order_investment: Decimal
    realized_pnl: Decimal
    account_balance: Decimal

    def to_dict(self) -> Dict[str, float]:
        return {
            "totalDeposit": as_number(self.total_deposit),
            "totalWithdrawals": as_number(self.total_withdrawals),
            "baseBalance": as_number(self.base_balance),
            "orderInvestment": as_number(self.order_investment),
            "realizedPnL": as_number(self.realized_pnl),
            "accountBalance": as_number(self.account_balance),
        }


def compose_balance(totals: LedgerTotals) -> BalanceSummary:
    """
    Compose the balance from ledger totals.

    Args:
        totals: Sums over the cash and order ledgers

    Returns:
        BalanceSummary
    """
    base_balance = totals.total_deposit - totals.total_withdrawals
    return BalanceSummary(
        total_deposit=totals.total_deposit,
        total_withdrawals=totals.total_withdrawals,
        base_balance=base_balance,
        order_investment=totals.order_investment,
        realized_pnl=totals.realized_pnl,
        account_balance=base_balance - totals.order_investment + totals.realized_pnl,
    )


def summarize_ledgers(transactions: Iterable[Any], orders: Iterable[Any]) -> LedgerTotals:
    """
    Sum ledger snapshots in memory.

    Accepts anything with the ledger attributes (ORM rows or
    plain objects). Only COMPLETED cash movements count.
    """
    deposit = ZERO
    withdrawal = ZERO
    for txn in transactions:
        if _value(txn.status) != TransactionStatus.COMPLETED.value:
            continue
        kind = _value(txn.type)
        if kind == TransactionType.DEPOSIT.value:
            deposit += to_decimal(txn.amount)
        elif kind == TransactionType.WITHDRAWAL.value:
            withdrawal += to_decimal(txn.amount)

    investment = ZERO
    realized = ZERO
    for order in orders:
        status = _value(order.status)
        if status == OrderStatus.OPEN.value:
            investment += to_decimal(order.trade_amount)
        elif status == OrderStatus.CLOSED.value:
            realized += to_decimal(order.profit_loss)

    return LedgerTotals(
        total_deposit=deposit,
        total_withdrawals=withdrawal,
        order_investment=investment,
        realized_pnl=realized,
    )


def _value(member: Any) -> Any:
    return getattr(member, "value", member)


__all__ = [
    "ZERO",
    "LedgerTotals",
    "BalanceSummary",
    "compose_balance",
    "summarize_ledgers",
    "to_decimal",
    "as_number",
]
