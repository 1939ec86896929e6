"""
Accounting - Position Lifecycle.

============================================================
PURPOSE
============================================================
Keeps the order invariants whenever an order is created or
edited, and owns the admin position operations.

============================================================
INVARIANTS
============================================================
- tradeAmount = quantity * buyPrice, recomputed on every edit
- priceRange.mid = buyPrice
- profitLoss is set iff quantity, buyPrice and sellPrice are
  all set. LONG: sellTotal - buyTotal. SHORT: buyTotal - sellTotal
- currentPrice is only kept while the order is OPEN and both
  range bounds are set; a range edit resets it to buyPrice

============================================================
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from accounting.aggregator import ZERO, as_number, to_decimal
from core.clock import ClockProtocol, SystemClock, to_iso8601
from core.exceptions import NotFoundError, ValidationError
from storage.models.ledger import Order, OrderStatus, OrderType
from storage.repositories.exceptions import InvalidEnumValueError, RecordNotFoundError
from storage.repositories.ledger import OrderRepository
from storage.repositories.users import UserRepository


logger = logging.getLogger(__name__)


# ============================================================
# PURE INVARIANT HELPERS
# ============================================================

def parse_amount(field: str, value: Any, positive: bool = True) -> Optional[Decimal]:
    """
    Parse a numeric field.

    Returns:
        Decimal, or None when value is None or empty

    Raises:
        ValidationError: not a number, or not positive when required
    """
    if value is None or value == "":
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", fields=[field])
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number", fields=[field])
    if positive and amount <= ZERO:
        raise ValidationError(f"{field} must be greater than 0", fields=[field])
    return amount


def parse_order_type(value: Any) -> str:
    raw = str(getattr(value, "value", value) or "").strip().upper()
    if raw not in OrderType.values():
        raise ValidationError(
            f"Invalid trade type. Must be one of: {', '.join(OrderType.values())}",
            fields=["type"],
        )
    return raw


def compute_trade_amount(quantity: Decimal, buy_price: Decimal) -> Decimal:
    return quantity * buy_price


def compute_profit_loss(
    order_type: str,
    quantity: Optional[Decimal],
    buy_price: Optional[Decimal],
    sell_price: Optional[Decimal],
) -> Optional[Decimal]:
    """Realized P&L of a position, or None while any input is missing."""
    if quantity is None or buy_price is None or sell_price is None:
        return None
    buy_total = buy_price * quantity
    sell_total = sell_price * quantity
    if order_type == OrderType.LONG.value:
        return sell_total - buy_total
    return buy_total - sell_total


def range_is_bounded(order: Order) -> bool:
    return order.price_low is not None and order.price_high is not None


def recompute_invariants(order: Order, reset_current_price: bool = False) -> Order:
    """
    Re-derive every dependent field from the order's inputs.

    Args:
        order: Order with quantity, buy_price, sell_price, type set
        reset_current_price: Put current price back at the mid
    """
    order.trade_amount = compute_trade_amount(order.quantity, order.buy_price)
    order.price_mid = order.buy_price
    order.profit_loss = compute_profit_loss(order.type, order.quantity, order.buy_price, order.sell_price)

    if order.status != OrderStatus.OPEN.value or not range_is_bounded(order):
        order.current_price = None
    elif reset_current_price or order.current_price is None:
        order.current_price = order.buy_price
    return order


def order_to_dict(order: Order) -> Dict[str, Any]:
    """Wire view of an order."""
    return {
        "id": str(order.id),
        "userId": str(order.user_id),
        "symbol": order.symbol,
        "type": order.type,
        "quantity": as_number(order.quantity),
        "buyPrice": as_number(order.buy_price),
        "sellPrice": as_number(order.sell_price),
        "tradeAmount": as_number(order.trade_amount),
        "priceRange": {
            "low": as_number(order.price_low),
            "high": as_number(order.price_high),
            "mid": as_number(order.price_mid),
        },
        "currentPrice": as_number(order.current_price),
        "profitLoss": as_number(order.profit_loss),
        "status": order.status,
        "tradeDate": to_iso8601(order.trade_date),
        "createdAt": to_iso8601(order.created_at),
        "updatedAt": to_iso8601(order.updated_at),
    }


@dataclass(frozen=True)
class OrderSummary:
    total_trades: int
    total_investment: Decimal
    net_profit_loss: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalTrades": self.total_trades,
            "totalInvestment": as_number(self.total_investment),
            "netProfitLoss": as_number(self.net_profit_loss),
        }


def summarize_orders(orders: List[Order]) -> OrderSummary:
    """Trade count, capital deployed and net P&L over all orders."""
    return OrderSummary(
        total_trades=len(orders),
        total_investment=sum((to_decimal(o.trade_amount) for o in orders), ZERO),
        net_profit_loss=sum((to_decimal(o.profit_loss) for o in orders), ZERO),
    )


# ============================================================
# POSITION SERVICE
# ============================================================

# Editable order inputs, wire name -> column
_EDITABLE = {
    "symbol": "symbol",
    "type": "type",
    "quantity": "quantity",
    "buyPrice": "buy_price",
    "sellPrice": "sell_price",
    "priceRangeLow": "price_low",
    "priceRangeHigh": "price_high",
    "currentPrice": "current_price",
    "status": "status",
}


class PositionService:
    """
    Admin order bookkeeping.

    Owns the commit boundary for order writes.
    """

    def __init__(self, session: Session, clock: Optional[ClockProtocol] = None):
        self.session = session
        self.orders = OrderRepository(session)
        self.users = UserRepository(session)
        self.clock = clock or SystemClock()

    def create_order(
        self,
        user_id: uuid.UUID,
        symbol: str,
        order_type: Any,
        quantity: Any,
        buy_price: Any,
        price_low: Any = None,
        price_high: Any = None,
    ) -> Order:
        """
        Open a new position.

        Raises:
            ValidationError: missing or invalid input
            NotFoundError: user does not exist
        """
        symbol = (symbol or "").strip().upper()
        if not symbol:
            raise ValidationError("symbol is required", fields=["symbol"])
        quantity = parse_amount("quantity", quantity)
        buy_price = parse_amount("buyPrice", buy_price)
        if quantity is None or buy_price is None:
            raise ValidationError("quantity and buyPrice are required", fields=["quantity", "buyPrice"])

        if self.users.get(user_id) is None:
            raise NotFoundError("User", user_id)

        order = Order(
            user_id=user_id,
            symbol=symbol,
            type=parse_order_type(order_type),
            quantity=quantity,
            buy_price=buy_price,
            price_low=parse_amount("priceRangeLow", price_low),
            price_high=parse_amount("priceRangeHigh", price_high),
            status=OrderStatus.OPEN.value,
            trade_date=self.clock.now(),
        )
        self._check_range(order)
        recompute_invariants(order, reset_current_price=True)

        self.orders.add(order)
        self.orders.commit()
        logger.info(f"Order opened: {order.id} {order.type} {order.symbol} user={user_id}")
        return order

    def update_order(self, order_id: uuid.UUID, changes: Dict[str, Any]) -> Order:
        """
        Edit an order and re-derive its invariants from the merged record.

        Args:
            order_id: Order to edit
            changes: Wire-named fields; unknown keys are ignored

        Raises:
            NotFoundError: order does not exist
            ValidationError: invalid value or transition
        """
        try:
            order = self.orders.get_or_raise(order_id)
        except RecordNotFoundError:
            raise NotFoundError("Trade", order_id)

        was_open = order.status == OrderStatus.OPEN.value
        range_touched = False

        for wire_name, column in _EDITABLE.items():
            if wire_name not in changes:
                continue
            value = changes[wire_name]

            if column == "symbol":
                value = (value or "").strip().upper()
                if not value:
                    raise ValidationError("symbol is required", fields=["symbol"])
            elif column == "type":
                value = parse_order_type(value)
            elif column == "status":
                value = str(value or "").strip().upper()
                if value not in OrderStatus.values():
                    raise ValidationError(
                        f"Invalid status. Must be one of: {', '.join(OrderStatus.values())}",
                        fields=["status"],
                    )
                if not was_open and value == OrderStatus.OPEN.value:
                    raise ValidationError("A closed trade cannot be reopened", fields=["status"])
            elif column in ("quantity", "buy_price"):
                value = parse_amount(wire_name, value)
                if value is None:
                    raise ValidationError(f"{wire_name} cannot be cleared", fields=[wire_name])
            else:
                value = parse_amount(wire_name, value)
                if column in ("price_low", "price_high"):
                    range_touched = True

            setattr(order, column, value)

        self._check_range(order)
        recompute_invariants(
            order,
            reset_current_price=range_touched or ("buyPrice" in changes and "currentPrice" not in changes),
        )

        try:
            self.orders.save(order)
        except InvalidEnumValueError as e:
            raise ValidationError(e.reason, fields=[e.field])
        self.orders.commit(order.id)

        if was_open and order.status == OrderStatus.CLOSED.value:
            logger.info(f"Order closed: {order.id} profit_loss={order.profit_loss}")
        return order

    def list_orders(self, user_id: uuid.UUID, status: Optional[str] = None) -> List[Order]:
        """
        A user's orders newest first, optionally filtered by status.

        "All" or an empty status means no filter.
        """
        if status and status.strip().lower() != "all":
            status = status.strip().upper()
            if status not in OrderStatus.values():
                raise ValidationError(
                    f"Invalid status. Must be one of: {', '.join(OrderStatus.values())}",
                    fields=["status"],
                )
        else:
            status = None
        return self.orders.list_for_user(user_id, status=status)

    def summary(self, user_id: uuid.UUID) -> OrderSummary:
        return summarize_orders(self.orders.list_for_user(user_id))

    @staticmethod
    def _check_range(order: Order) -> None:
        if range_is_bounded(order) and order.price_low > order.price_high:
            raise ValidationError(
                "priceRangeLow cannot exceed priceRangeHigh",
                fields=["priceRangeLow", "priceRangeHigh"],
            )
