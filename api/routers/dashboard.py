"""
FastAPI Router for the user dashboard.

GET /api/v1/dashboard/summary                    caller's balance
GET /api/v1/dashboard/settings/bank-visibility   public flag
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from access_control.dependencies import get_current_user
from accounting.service import BalanceService
from api.dependencies import get_db
from api.routers.settings import BANK_VISIBILITY_KEY, read_bank_visibility
from api.schemas import success
from storage.models.accounts import User


router = APIRouter(prefix="/api/v1/dashboard", tags=["Dashboard"])


@router.get("/summary")
def get_summary(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Balance of the logged-in user.

    accountBalance = totalDeposit - totalWithdrawals
                     - orderInvestment + realizedPnL
    """
    summary = BalanceService(db).compute_balance(user.id)
    return success(summary.to_dict(), "Dashboard data retrieved successfully")


@router.get("/settings/bank-visibility")
def get_bank_visibility(db: Session = Depends(get_db)):
    return success(
        {BANK_VISIBILITY_KEY: read_bank_visibility(db)},
        "Bank details visibility setting retrieved successfully",
    )
