"""
FastAPI Router for admin endpoints.

Provides REST API under /api/v1/admin:
- KPI dashboard
- User listing, detail and deletion
- Review of cash requests
- Position entry and editing

Every route requires an admin session.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from access_control.dependencies import require_admin
from access_control.directory import UserDirectory
from accounting.kpi import KpiService
from accounting.positions import PositionService, order_to_dict
from accounting.transactions import CashLedgerService, transaction_to_dict
from api.dependencies import get_clock, get_db
from api.schemas import success
from core.clock import ClockProtocol
from storage.models.accounts import User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


# =============================================================
# SCHEMAS
# =============================================================

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransactionDecision(CamelModel):
    reason: Optional[str] = None


class TransactionStatusUpdate(CamelModel):
    status: str
    reason: Optional[str] = None


class OrderCreate(CamelModel):
    user_id: uuid.UUID
    symbol: str
    trade_type: str = Field(..., description="LONG or SHORT")
    quantity: Any
    buy_price: Any
    price_range_low: Optional[Any] = None
    price_range_high: Optional[Any] = None


class OrderUpdate(CamelModel):
    symbol: Optional[str] = None
    type: Optional[str] = None
    quantity: Optional[Any] = None
    buy_price: Optional[Any] = None
    sell_price: Optional[Any] = None
    price_range_low: Optional[Any] = None
    price_range_high: Optional[Any] = None
    current_price: Optional[Any] = None
    status: Optional[str] = None


# =============================================================
# HELPER: Service instances
# =============================================================

def get_ledger(db: Session = Depends(get_db), clock: ClockProtocol = Depends(get_clock)) -> CashLedgerService:
    return CashLedgerService(db, clock)


def get_positions(db: Session = Depends(get_db), clock: ClockProtocol = Depends(get_clock)) -> PositionService:
    return PositionService(db, clock)


# =============================================================
# KPI ENDPOINTS
# =============================================================

@router.get("/kpis")
def get_kpis(
    db: Session = Depends(get_db),
    clock: ClockProtocol = Depends(get_clock),
):
    return success(KpiService(db, clock).compute(), "KPI data retrieved successfully")


# =============================================================
# USER ENDPOINTS
# =============================================================

@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    rows, pagination = UserDirectory(db).list_users(page, limit)
    return success({"users": rows, "pagination": pagination}, "Users retrieved successfully")


@router.get("/users/{user_id}")
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db)):
    return success(UserDirectory(db).detail(user_id), "User retrieved successfully")


@router.delete("/users/{user_id}")
def delete_user(user_id: uuid.UUID, db: Session = Depends(get_db)):
    UserDirectory(db).delete(user_id)
    return success(None, "User deleted successfully")


@router.get("/users/{user_id}/orders")
def get_user_orders(user_id: uuid.UUID, positions: PositionService = Depends(get_positions)):
    orders = positions.list_orders(user_id)
    return success([order_to_dict(o) for o in orders], "Trade history retrieved successfully")


# =============================================================
# CASH REVIEW ENDPOINTS
# =============================================================

@router.post("/transactions/{transaction_id}/approve")
def approve_transaction(
    transaction_id: uuid.UUID,
    admin: User = Depends(require_admin),
    ledger: CashLedgerService = Depends(get_ledger),
):
    txn = ledger.approve(transaction_id, admin.id)
    kind = txn.type.capitalize()
    return success(transaction_to_dict(txn), f"{kind} request approved successfully")


@router.post("/transactions/{transaction_id}/reject")
def reject_transaction(
    transaction_id: uuid.UUID,
    body: Optional[TransactionDecision] = Body(None),
    admin: User = Depends(require_admin),
    ledger: CashLedgerService = Depends(get_ledger),
):
    txn = ledger.reject(transaction_id, admin.id, body.reason if body else None)
    kind = txn.type.capitalize()
    return success(transaction_to_dict(txn), f"{kind} request rejected successfully")


@router.patch("/transactions/{transaction_id}/status")
def update_transaction_status(
    transaction_id: uuid.UUID,
    body: TransactionStatusUpdate,
    admin: User = Depends(require_admin),
    ledger: CashLedgerService = Depends(get_ledger),
):
    txn = ledger.set_status(transaction_id, body.status, admin.id, body.reason)
    return success(transaction_to_dict(txn), f"Transaction {txn.status.lower()} successfully")


# =============================================================
# POSITION ENDPOINTS
# =============================================================

@router.post("/orders", status_code=status.HTTP_201_CREATED)
def create_order(body: OrderCreate, positions: PositionService = Depends(get_positions)):
    order = positions.create_order(
        body.user_id,
        body.symbol,
        body.trade_type,
        body.quantity,
        body.buy_price,
        price_low=body.price_range_low,
        price_high=body.price_range_high,
    )
    return success(order_to_dict(order), "Trade created successfully")


@router.patch("/orders/{order_id}")
def update_order(
    order_id: uuid.UUID,
    body: OrderUpdate,
    positions: PositionService = Depends(get_positions),
):
    changes = body.model_dump(exclude_unset=True, by_alias=True)
    order = positions.update_order(order_id, changes)
    return success(order_to_dict(order), "Trade updated successfully")
