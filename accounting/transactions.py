"""
Accounting - Cash Ledger Service.

============================================================
PURPOSE
============================================================
Cash movement requests from users and their review by admins.

============================================================
STATUS FLOW
============================================================
PENDING -> COMPLETED   (approve; records approvedBy/approvedAt)
PENDING -> CANCELLED   (reject a withdrawal)
PENDING -> FAILED      (reject a deposit)

A COMPLETED transaction is final. Only its audit fields can
be written afterwards.

============================================================
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from accounting.aggregator import as_number
from accounting.positions import parse_amount
from accounting.service import BalanceService
from core.clock import ClockProtocol, SystemClock, to_iso8601
from core.exceptions import ConflictError, NotFoundError, ValidationError
from storage.models.ledger import CashTransaction, PaymentMethod, TransactionStatus, TransactionType
from storage.repositories.exceptions import (
    ImmutableRecordError,
    InvalidEnumValueError,
    RecordNotFoundError,
)
from storage.repositories.ledger import CashTransactionRepository


logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Request rejected by admin"


def transaction_to_dict(txn: CashTransaction) -> Dict[str, Any]:
    """Wire view of a cash transaction."""
    return {
        "id": str(txn.id),
        "userId": str(txn.user_id),
        "type": txn.type,
        "amount": as_number(txn.amount),
        "status": txn.status,
        "paymentMethod": txn.payment_method,
        "reason": txn.reason,
        "timestamp": to_iso8601(txn.timestamp),
        "approvedBy": str(txn.approved_by) if txn.approved_by else None,
        "approvedAt": to_iso8601(txn.approved_at),
        "rejectedBy": str(txn.rejected_by) if txn.rejected_by else None,
        "rejectedAt": to_iso8601(txn.rejected_at),
        "rejectionReason": txn.rejection_reason,
    }


class CashLedgerService:
    """Cash transaction requests and admin review."""

    def __init__(self, session: Session, clock: Optional[ClockProtocol] = None):
        self.transactions = CashTransactionRepository(session)
        self.balances = BalanceService(session)
        self.clock = clock or SystemClock()

    # =========================================================
    # USER SIDE
    # =========================================================

    def request(
        self,
        user_id: uuid.UUID,
        kind: str,
        amount: Any,
        payment_method: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> CashTransaction:
        """
        Record a PENDING deposit or withdrawal request.

        Raises:
            ValidationError: bad type, amount, payment method, or a
                withdrawal above the available balance
        """
        kind = str(kind or "").strip().upper()
        if kind not in TransactionType.values():
            raise ValidationError(
                f"Invalid type. Must be one of: {', '.join(TransactionType.values())}",
                fields=["type"],
            )
        amount = parse_amount("amount", amount)
        if amount is None:
            raise ValidationError("amount is required", fields=["amount"])
        if payment_method is not None:
            payment_method = payment_method.strip().upper() or None

        if kind == TransactionType.WITHDRAWAL.value:
            available = self.balances.compute_balance(user_id).account_balance
            if amount > available:
                raise ValidationError("Insufficient balance for this withdrawal", fields=["amount"])

        try:
            txn = self.transactions.create(
                user_id=user_id,
                type=kind,
                amount=amount,
                payment_method=payment_method,
                reason=reason,
                timestamp=self.clock.now(),
            )
        except InvalidEnumValueError as e:
            raise ValidationError(
                f"Invalid {e.field}. Must be one of: {', '.join(PaymentMethod.values())}",
                fields=[e.field],
            )
        self.transactions.commit()
        logger.info(f"Cash request recorded: {txn.id} {kind} {amount} user={user_id}")
        return txn

    def history(self, user_id: uuid.UUID) -> List[CashTransaction]:
        """A user's cash ledger, newest first."""
        return self.transactions.list_for_user(user_id)

    # =========================================================
    # ADMIN SIDE
    # =========================================================

    def approve(self, transaction_id: uuid.UUID, admin_id: uuid.UUID) -> CashTransaction:
        """
        Complete a pending request.

        Raises:
            NotFoundError: transaction does not exist
            ValidationError: transaction is not pending
        """
        txn = self._pending(transaction_id, "approved")
        self._apply(txn, status=TransactionStatus.COMPLETED.value, approved_by=admin_id, approved_at=self.clock.now())
        logger.info(f"Transaction {txn.id} approved by {admin_id}")
        return txn

    def reject(
        self,
        transaction_id: uuid.UUID,
        admin_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> CashTransaction:
        """
        Refuse a pending request.

        Withdrawals become CANCELLED, deposits FAILED.
        """
        txn = self._pending(transaction_id, "rejected")
        status = (
            TransactionStatus.CANCELLED if txn.type == TransactionType.WITHDRAWAL.value
            else TransactionStatus.FAILED
        )
        self._apply(
            txn,
            status=status.value,
            rejected_by=admin_id,
            rejected_at=self.clock.now(),
            rejection_reason=(reason or "").strip() or DEFAULT_REJECTION_REASON,
        )
        logger.info(f"Transaction {txn.id} rejected by {admin_id}: {status.value}")
        return txn

    def set_status(
        self,
        transaction_id: uuid.UUID,
        status: str,
        admin_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> CashTransaction:
        """
        Move a transaction to any valid status.

        Raises:
            ValidationError: status not in the enum
            ConflictError: transaction is already COMPLETED
        """
        status = str(status or "").strip().upper()
        if status not in TransactionStatus.values():
            raise ValidationError("Invalid status provided", fields=["status"])

        txn = self._get(transaction_id)
        changes: Dict[str, Any] = {"status": status}
        now = self.clock.now()
        if status == TransactionStatus.COMPLETED.value and txn.status != status:
            changes.update(approved_by=admin_id, approved_at=now)
        elif status in (TransactionStatus.CANCELLED.value, TransactionStatus.FAILED.value):
            changes.update(rejected_by=admin_id, rejected_at=now)
            if reason:
                changes["rejection_reason"] = reason
        self._apply(txn, **changes)
        logger.info(f"Transaction {txn.id} set to {status} by {admin_id}")
        return txn

    # =========================================================
    # HELPERS
    # =========================================================

    def _get(self, transaction_id: uuid.UUID) -> CashTransaction:
        try:
            return self.transactions.get_or_raise(transaction_id)
        except RecordNotFoundError:
            raise NotFoundError("Transaction", transaction_id)

    def _pending(self, transaction_id: uuid.UUID, action: str) -> CashTransaction:
        txn = self._get(transaction_id)
        if txn.status != TransactionStatus.PENDING.value:
            raise ValidationError(
                f"Only pending transactions can be {action} (current status: {txn.status})",
                fields=["status"],
            )
        return txn

    def _apply(self, txn: CashTransaction, **changes: Any) -> None:
        try:
            self.transactions.update(txn, **changes)
        except ImmutableRecordError:
            self.transactions.rollback()
            raise ConflictError(
                "Completed transactions cannot be changed",
                context={"transaction_id": str(txn.id)},
            )
        self.transactions.commit(txn.id)
