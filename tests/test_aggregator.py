"""
Tests for balance aggregation.

Tests cover:
- Balance composition from ledger totals
- Status filtering of cash and order ledgers
- Database-backed balance of one user
- Independence from ledger order and repeated reads
"""

import random
import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from accounting.aggregator import LedgerTotals, compose_balance, summarize_ledgers
from accounting.positions import PositionService
from accounting.service import BalanceService


def txn(kind, amount, status="COMPLETED"):
    return SimpleNamespace(type=kind, amount=Decimal(str(amount)), status=status)


def order(status, trade_amount, profit_loss=None):
    return SimpleNamespace(
        status=status,
        trade_amount=Decimal(str(trade_amount)),
        profit_loss=None if profit_loss is None else Decimal(str(profit_loss)),
    )


# =============================================================
# TEST: Pure aggregation
# =============================================================

class TestComposeBalance:

    def test_empty_ledgers_are_zero(self):
        summary = compose_balance(summarize_ledgers([], []))
        assert summary.to_dict() == {
            "totalDeposit": 0.0,
            "totalWithdrawals": 0.0,
            "baseBalance": 0.0,
            "orderInvestment": 0.0,
            "realizedPnL": 0.0,
            "accountBalance": 0.0,
        }

    def test_account_balance_formula(self):
        totals = LedgerTotals(
            total_deposit=Decimal("1000"),
            total_withdrawals=Decimal("200"),
            order_investment=Decimal("300"),
            realized_pnl=Decimal("-50"),
        )
        summary = compose_balance(totals)
        assert summary.base_balance == Decimal("800")
        assert summary.account_balance == Decimal("450")

    def test_only_completed_cash_counts(self):
        totals = summarize_ledgers(
            [
                txn("DEPOSIT", 1000),
                txn("DEPOSIT", 700, status="PENDING"),
                txn("DEPOSIT", 50, status="FAILED"),
                txn("WITHDRAWAL", 100),
                txn("WITHDRAWAL", 400, status="CANCELLED"),
            ],
            [],
        )
        assert totals.total_deposit == Decimal("1000")
        assert totals.total_withdrawals == Decimal("100")

    def test_open_orders_lock_capital_closed_orders_realize(self):
        totals = summarize_ledgers(
            [],
            [
                order("OPEN", 500, profit_loss=999),
                order("CLOSED", 200, profit_loss=300),
                order("CLOSED", 100),
            ],
        )
        assert totals.order_investment == Decimal("500")
        assert totals.realized_pnl == Decimal("300")

    def test_open_then_closed_scenario(self):
        """Deposit 1000, open 500 -> 500 available; close with +300 -> 1300."""
        cash = [txn("DEPOSIT", 1000)]

        opened = compose_balance(summarize_ledgers(cash, [order("OPEN", 500)]))
        assert opened.account_balance == Decimal("500")

        closed = compose_balance(summarize_ledgers(cash, [order("CLOSED", 500, profit_loss=300)]))
        assert closed.account_balance == Decimal("1300")

    @pytest.mark.parametrize("seed", range(5))
    def test_ledger_order_does_not_matter(self, seed):
        cash = [
            txn("DEPOSIT", "1000.10"),
            txn("DEPOSIT", 300, status="PENDING"),
            txn("WITHDRAWAL", "99.95"),
            txn("DEPOSIT", 40),
        ]
        orders = [
            order("OPEN", 250),
            order("CLOSED", 120, profit_loss="-20.5"),
            order("CLOSED", 80, profit_loss=15),
            order("OPEN", "10.25"),
        ]
        expected = compose_balance(summarize_ledgers(cash, orders))

        rng = random.Random(seed)
        rng.shuffle(cash)
        rng.shuffle(orders)

        assert compose_balance(summarize_ledgers(cash, orders)) == expected
        assert expected.account_balance == Decimal("674.40")


# =============================================================
# TEST: Database-backed balance
# =============================================================

class TestBalanceService:

    def test_unknown_user_has_zero_balance(self, session):
        summary = BalanceService(session).compute_balance(uuid.uuid4())
        assert summary.account_balance == Decimal("0")

    def test_matches_in_memory_aggregation(self, session, make_user, make_cash, clock):
        user = make_user(is_verified=True)
        make_cash(user.id, "DEPOSIT", 1000)
        make_cash(user.id, "DEPOSIT", 250, status="PENDING")
        make_cash(user.id, "WITHDRAWAL", 100)

        positions = PositionService(session, clock)
        positions.create_order(user.id, "eurusd", "LONG", 2, 100)
        closing = positions.create_order(user.id, "gbpusd", "SHORT", 1, 50)
        positions.update_order(closing.id, {"sellPrice": 40, "status": "CLOSED"})

        summary = BalanceService(session).compute_balance(user.id)
        assert summary.total_deposit == Decimal("1000")
        assert summary.total_withdrawals == Decimal("100")
        assert summary.order_investment == Decimal("200")
        assert summary.realized_pnl == Decimal("10")
        assert summary.account_balance == Decimal("710")

    def test_repeated_reads_agree(self, session, make_user, make_cash, clock):
        user = make_user(is_verified=True)
        make_cash(user.id, "DEPOSIT", 1000)
        PositionService(session, clock).create_order(user.id, "eurusd", "LONG", 3, 100)
        service = BalanceService(session)

        first = service.compute_balance(user.id)
        second = service.compute_balance(user.id)

        assert first.to_dict() == second.to_dict()
        assert second.account_balance == Decimal("700")

    def test_other_users_are_excluded(self, session, make_user, make_cash):
        alice = make_user(is_verified=True)
        bob = make_user(is_verified=True)
        make_cash(alice.id, "DEPOSIT", 500)
        make_cash(bob.id, "DEPOSIT", 900)

        assert BalanceService(session).compute_balance(alice.id).total_deposit == Decimal("500")
