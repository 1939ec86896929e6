"""
Accounting - Admin KPIs.

============================================================
PURPOSE
============================================================
Figures for the admin console, each with a trend comparing
the current 30-day window [now-30d, now) to the prior one
[now-60d, now-30d).

============================================================
TREND RULE
============================================================
- prior > 0: (current - prior) / prior * 100, one decimal
- prior == 0 and current != 0: 100
- both zero: 0

============================================================
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from sqlalchemy.orm import Session

from accounting.aggregator import ZERO, as_number
from core.clock import ClockProtocol, SystemClock, to_iso8601
from storage.models.accounts import UserRole
from storage.models.ledger import CashTransaction, TransactionStatus, TransactionType
from storage.repositories.ledger import CashTransactionRepository
from storage.repositories.users import UserRepository


logger = logging.getLogger(__name__)

WINDOW_DAYS = 30
RECENT_LIMIT = 10

# Ledger status -> console status
_DISPLAY_STATUS = {
    TransactionStatus.PENDING.value: "pending",
    TransactionStatus.COMPLETED.value: "completed",
    TransactionStatus.CANCELLED.value: "rejected",
    TransactionStatus.FAILED.value: "rejected",
}

Number = Union[int, float, Decimal]


def trend_percent(current: Number, previous: Number) -> float:
    """
    Percentage change from previous to current.

    Examples:
        trend_percent(500, 0) -> 100.0
        trend_percent(0, 0) -> 0.0
        trend_percent(150, 100) -> 50.0
    """
    current = Decimal(str(current))
    previous = Decimal(str(previous))
    if previous == 0:
        return 100.0 if current != 0 else 0.0
    return round(float((current - previous) / previous * 100), 1)


def display_status(status: str) -> str:
    return _DISPLAY_STATUS.get(status, "unknown")


@dataclass(frozen=True)
class Windows:
    """Current and prior reporting windows."""

    current_start: datetime
    current_end: datetime
    prior_start: datetime

    @classmethod
    def ending_at(cls, now: datetime, days: int = WINDOW_DAYS) -> "Windows":
        return cls(
            current_start=now - timedelta(days=days),
            current_end=now,
            prior_start=now - timedelta(days=2 * days),
        )

    @property
    def current(self) -> Tuple[datetime, datetime]:
        return self.current_start, self.current_end

    @property
    def prior(self) -> Tuple[datetime, datetime]:
        return self.prior_start, self.current_start


class KpiService:
    """Admin dashboard figures."""

    def __init__(self, session: Session, clock: Optional[ClockProtocol] = None):
        self.users = UserRepository(session)
        self.transactions = CashTransactionRepository(session)
        self.clock = clock or SystemClock()

    def compute(self) -> Dict[str, Any]:
        """
        All KPI figures.

        Returns:
            Dict with totalUsers, activeTraders, pendingWithdrawals,
            pendingDeposits, recentWithdrawals, recentDeposits
        """
        windows = Windows.ending_at(self.clock.now())

        total_users = self.users.count_by_role(UserRole.USER)
        new_users = self.users.count_created_between(*windows.current)
        prior_new_users = self.users.count_created_between(*windows.prior)

        active = self._active_traders(windows.current_start)
        prior_active = self._active_traders(*windows.prior)

        result = {
            "totalUsers": {
                "value": total_users,
                "newInWindow": new_users,
                "trend": trend_percent(new_users, prior_new_users),
            },
            "activeTraders": {
                "value": len(active),
                "trend": trend_percent(len(active), len(prior_active)),
            },
            "pendingWithdrawals": self._pending(TransactionType.WITHDRAWAL, windows),
            "pendingDeposits": self._pending(TransactionType.DEPOSIT, windows),
            "recentWithdrawals": self._recent(TransactionType.WITHDRAWAL),
            "recentDeposits": self._recent(TransactionType.DEPOSIT),
            "generatedAt": to_iso8601(windows.current_end),
        }
        logger.debug(f"KPIs computed: users={total_users} active={len(active)}")
        return result

    # =========================================================
    # FIGURES
    # =========================================================

    def _active_traders(self, start: datetime, end: Optional[datetime] = None) -> Set[uuid.UUID]:
        """Existing users who logged in or moved cash within the window."""
        candidates = (
            self.users.ids_logged_in_between(start, end)
            | self.transactions.user_ids_active_between(start, end)
        )
        return set(self.users.names_by_id(candidates))

    def _pending(self, kind: TransactionType, windows: Windows) -> Dict[str, Any]:
        pending = TransactionStatus.PENDING
        total = self.transactions.sum_amount(kind, pending)
        count = self.transactions.count_matching(kind, pending)
        current = self.transactions.sum_amount(kind, pending, since=windows.current_start, until=windows.current_end)
        prior = self.transactions.sum_amount(kind, pending, since=windows.prior_start, until=windows.current_start)
        return {
            "amount": as_number(total),
            "count": count,
            "trend": trend_percent(current, prior),
        }

    def _recent(self, kind: TransactionType) -> List[Dict[str, Any]]:
        rows = self.transactions.recent(kind, RECENT_LIMIT)
        people = self.users.names_by_id({row.user_id for row in rows})
        return [self._recent_row(row, people.get(row.user_id)) for row in rows]

    @staticmethod
    def _recent_row(txn: CashTransaction, person: Optional[Tuple[str, str]]) -> Dict[str, Any]:
        name, email = person if person else ("Unknown User", None)
        return {
            "id": str(txn.id),
            "userId": str(txn.user_id),
            "user": name,
            "userEmail": email,
            "amount": as_number(txn.amount or ZERO),
            "paymentMethod": txn.payment_method,
            "status": display_status(txn.status),
            "date": to_iso8601(txn.timestamp),
        }


__all__ = ["trend_percent", "display_status", "Windows", "KpiService", "WINDOW_DAYS"]
