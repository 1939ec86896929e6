"""
Accounting - Balance Service.

Reads the ledger totals for one user and composes the balance.
The two ledgers are read without a shared transaction; a
concurrent write may land between the reads.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from accounting.aggregator import BalanceSummary, LedgerTotals, compose_balance
from storage.models.ledger import OrderStatus, TransactionStatus, TransactionType
from storage.repositories.ledger import CashTransactionRepository, OrderRepository


logger = logging.getLogger(__name__)


class BalanceService:
    """Balance reads against the ledger store."""

    def __init__(self, session: Session):
        self.transactions = CashTransactionRepository(session)
        self.orders = OrderRepository(session)

    def ledger_totals(self, user_id: uuid.UUID) -> LedgerTotals:
        completed = TransactionStatus.COMPLETED
        return LedgerTotals(
            total_deposit=self.transactions.sum_amount(TransactionType.DEPOSIT, completed, user_id=user_id),
            total_withdrawals=self.transactions.sum_amount(TransactionType.WITHDRAWAL, completed, user_id=user_id),
            order_investment=self.orders.sum_trade_amount(user_id, OrderStatus.OPEN),
            realized_pnl=self.orders.sum_profit_loss(user_id, OrderStatus.CLOSED),
        )

    def compute_balance(self, user_id: uuid.UUID) -> BalanceSummary:
        """
        Balance of one user.

        Args:
            user_id: Account to read

        Returns:
            BalanceSummary
        """
        summary = compose_balance(self.ledger_totals(user_id))
        logger.debug(f"Balance computed for {user_id}: {summary.account_balance}")
        return summary
