"""
Tests for the position lifecycle.

Tests cover:
- Invariants on creation (trade amount, mid, current price)
- Re-derivation on edit from the merged record
- Status transitions and validation
- Order history summary
"""

import uuid
from decimal import Decimal

import pytest

from accounting.positions import PositionService, compute_profit_loss, order_to_dict
from core.exceptions import NotFoundError, ValidationError


@pytest.fixture
def positions(session, clock):
    return PositionService(session, clock)


@pytest.fixture
def trader(make_user):
    return make_user(is_verified=True)


# =============================================================
# TEST: Profit and loss
# =============================================================

class TestProfitLoss:

    def test_long_gains_when_price_rises(self):
        assert compute_profit_loss("LONG", Decimal("5"), Decimal("100"), Decimal("160")) == Decimal("300")

    def test_short_gains_when_price_falls(self):
        assert compute_profit_loss("SHORT", Decimal("5"), Decimal("100"), Decimal("90")) == Decimal("50")

    def test_missing_input_gives_none(self):
        assert compute_profit_loss("LONG", Decimal("5"), Decimal("100"), None) is None


# =============================================================
# TEST: Creation
# =============================================================

class TestCreateOrder:

    def test_invariants_without_range(self, positions, trader):
        order = positions.create_order(trader.id, "eurusd", "long", "5", "100")

        assert order.symbol == "EURUSD"
        assert order.type == "LONG"
        assert order.status == "OPEN"
        assert order.trade_amount == Decimal("500")
        assert order.price_mid == Decimal("100")
        assert order.current_price is None
        assert order.profit_loss is None

    def test_current_price_starts_at_mid_when_range_given(self, positions, trader):
        order = positions.create_order(trader.id, "XAUUSD", "SHORT", 2, 1900, price_low=1850, price_high=1950)

        assert order.current_price == Decimal("1900")
        assert order_to_dict(order)["priceRange"] == {"low": 1850.0, "high": 1950.0, "mid": 1900.0}

    def test_half_range_keeps_current_price_empty(self, positions, trader):
        order = positions.create_order(trader.id, "XAUUSD", "LONG", 1, 1900, price_low=1850)
        assert order.current_price is None

    def test_inverted_range_is_rejected(self, positions, trader):
        with pytest.raises(ValidationError):
            positions.create_order(trader.id, "XAUUSD", "LONG", 1, 1900, price_low=2000, price_high=1800)

    @pytest.mark.parametrize("quantity,buy_price", [(0, 100), (-1, 100), (1, "abc"), (None, 100)])
    def test_bad_amounts_are_rejected(self, positions, trader, quantity, buy_price):
        with pytest.raises(ValidationError):
            positions.create_order(trader.id, "EURUSD", "LONG", quantity, buy_price)

    def test_unknown_type_is_rejected(self, positions, trader):
        with pytest.raises(ValidationError):
            positions.create_order(trader.id, "EURUSD", "SIDEWAYS", 1, 1)

    def test_unknown_user_is_rejected(self, positions):
        with pytest.raises(NotFoundError):
            positions.create_order(uuid.uuid4(), "EURUSD", "LONG", 1, 1)


# =============================================================
# TEST: Editing
# =============================================================

class TestUpdateOrder:

    def test_close_computes_profit_from_merged_record(self, positions, trader):
        order = positions.create_order(trader.id, "EURUSD", "LONG", 5, 100)

        updated = positions.update_order(order.id, {"sellPrice": 160, "status": "CLOSED"})

        assert updated.status == "CLOSED"
        assert updated.profit_loss == Decimal("300")
        assert updated.trade_amount == Decimal("500")
        assert updated.current_price is None

    def test_quantity_edit_recomputes_trade_amount(self, positions, trader):
        order = positions.create_order(trader.id, "EURUSD", "LONG", 5, 100)
        updated = positions.update_order(order.id, {"quantity": 3})
        assert updated.trade_amount == Decimal("300")

    def test_buy_price_edit_moves_mid_and_current_price(self, positions, trader):
        order = positions.create_order(trader.id, "EURUSD", "LONG", 1, 100, price_low=90, price_high=110)

        updated = positions.update_order(order.id, {"buyPrice": 105})

        assert updated.price_mid == Decimal("105")
        assert updated.current_price == Decimal("105")
        assert updated.trade_amount == Decimal("105")

    def test_explicit_current_price_is_kept(self, positions, trader):
        order = positions.create_order(trader.id, "EURUSD", "LONG", 1, 100, price_low=90, price_high=110)
        updated = positions.update_order(order.id, {"currentPrice": 104})
        assert updated.current_price == Decimal("104")

    def test_range_edit_resets_current_price(self, positions, trader):
        order = positions.create_order(trader.id, "EURUSD", "LONG", 1, 100, price_low=90, price_high=110)
        positions.update_order(order.id, {"currentPrice": 108})

        updated = positions.update_order(order.id, {"priceRangeHigh": 120})

        assert updated.current_price == Decimal("100")

    def test_closed_order_cannot_reopen(self, positions, trader):
        order = positions.create_order(trader.id, "EURUSD", "LONG", 1, 100)
        positions.update_order(order.id, {"sellPrice": 101, "status": "CLOSED"})

        with pytest.raises(ValidationError):
            positions.update_order(order.id, {"status": "OPEN"})

    def test_invalid_status_is_rejected(self, positions, trader):
        order = positions.create_order(trader.id, "EURUSD", "LONG", 1, 100)
        with pytest.raises(ValidationError):
            positions.update_order(order.id, {"status": "PAUSED"})

    def test_missing_order(self, positions):
        with pytest.raises(NotFoundError):
            positions.update_order(uuid.uuid4(), {"quantity": 1})


# =============================================================
# TEST: History
# =============================================================

class TestOrderHistory:

    def test_filter_and_summary(self, positions, trader):
        first = positions.create_order(trader.id, "EURUSD", "LONG", 5, 100)
        positions.create_order(trader.id, "GBPUSD", "LONG", 1, 50)
        positions.update_order(first.id, {"sellPrice": 90, "status": "CLOSED"})

        assert len(positions.list_orders(trader.id)) == 2
        assert len(positions.list_orders(trader.id, "All")) == 2
        assert [o.symbol for o in positions.list_orders(trader.id, "closed")] == ["EURUSD"]

        summary = positions.summary(trader.id).to_dict()
        assert summary == {"totalTrades": 2, "totalInvestment": 550.0, "netProfitLoss": -50.0}

    def test_bad_filter(self, positions, trader):
        with pytest.raises(ValidationError):
            positions.list_orders(trader.id, "pending")
