"""
Tests for admin KPIs.

Tests cover:
- Trend percentage edge cases
- Current vs prior 30-day windows
- Pending sums and recent activity rows
"""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from accounting.kpi import KpiService, Windows, display_status, trend_percent
from storage.models.accounts import UserRole
from tests.fakes import NOW


# =============================================================
# TEST: Trend
# =============================================================

class TestTrendPercent:

    def test_growth_from_zero_is_one_hundred(self):
        assert trend_percent(500, 0) == 100.0

    def test_both_zero_is_zero(self):
        assert trend_percent(0, 0) == 0.0

    def test_relative_change_is_rounded(self):
        assert trend_percent(150, 100) == 50.0
        assert trend_percent(1, 3) == -66.7

    def test_accepts_decimals(self):
        assert trend_percent(Decimal("75.5"), Decimal("151")) == -50.0


class TestDisplayStatus:

    @pytest.mark.parametrize("status,expected", [
        ("PENDING", "pending"),
        ("COMPLETED", "completed"),
        ("CANCELLED", "rejected"),
        ("FAILED", "rejected"),
    ])
    def test_mapping(self, status, expected):
        assert display_status(status) == expected


class TestWindows:

    def test_windows_are_adjacent(self):
        windows = Windows.ending_at(NOW)
        assert windows.current == (NOW - timedelta(days=30), NOW)
        assert windows.prior == (NOW - timedelta(days=60), NOW - timedelta(days=30))


# =============================================================
# TEST: KPI computation
# =============================================================

class TestKpiService:

    def test_empty_database(self, session, clock):
        kpis = KpiService(session, clock).compute()
        assert kpis["totalUsers"] == {"value": 0, "newInWindow": 0, "trend": 0.0}
        assert kpis["activeTraders"] == {"value": 0, "trend": 0.0}
        assert kpis["pendingWithdrawals"] == {"amount": 0.0, "count": 0, "trend": 0.0}
        assert kpis["recentDeposits"] == []

    def test_users_and_activity(self, session, clock, make_user, make_cash):
        recent = make_user(created_at=NOW - timedelta(days=5), last_login=NOW - timedelta(days=1))
        older = make_user(created_at=NOW - timedelta(days=40))
        make_user(role=UserRole.ADMIN, created_at=NOW - timedelta(days=2))

        make_cash(older.id, "DEPOSIT", 300, timestamp=NOW - timedelta(days=2))
        make_cash(recent.id, "WITHDRAWAL", 200, status="PENDING", timestamp=NOW - timedelta(days=3))
        make_cash(older.id, "WITHDRAWAL", 50, status="PENDING", timestamp=NOW - timedelta(days=45))

        kpis = KpiService(session, clock).compute()

        assert kpis["totalUsers"]["value"] == 2
        assert kpis["totalUsers"]["newInWindow"] == 1
        assert kpis["totalUsers"]["trend"] == 0.0

        assert kpis["activeTraders"]["value"] == 2
        assert kpis["activeTraders"]["trend"] == 100.0

        pending = kpis["pendingWithdrawals"]
        assert pending["amount"] == 250.0
        assert pending["count"] == 2
        assert pending["trend"] == 300.0

        deposits = kpis["recentDeposits"]
        assert len(deposits) == 1
        assert deposits[0]["user"] == older.name
        assert deposits[0]["status"] == "completed"

    def test_deleted_user_not_counted_as_active(self, session, clock, make_cash):
        make_cash(uuid.uuid4(), "DEPOSIT", 100, timestamp=NOW - timedelta(days=1))

        kpis = KpiService(session, clock).compute()
        assert kpis["activeTraders"]["value"] == 0
        assert kpis["recentDeposits"][0]["user"] == "Unknown User"

    def test_recent_rows_are_capped(self, session, clock, make_user, make_cash):
        user = make_user()
        for i in range(12):
            make_cash(user.id, "DEPOSIT", 10 + i, timestamp=NOW - timedelta(hours=i))

        rows = KpiService(session, clock).compute()["recentDeposits"]
        assert len(rows) == 10
        assert rows[0]["amount"] == 10.0
