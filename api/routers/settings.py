"""
FastAPI Router for admin-editable settings.

GET /api/v1/admin/settings/bank-visibility
PUT /api/v1/admin/settings/bank-visibility
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from access_control.dependencies import require_admin
from api.dependencies import get_db
from api.schemas import success
from core.exceptions import ValidationError
from storage.models.accounts import User
from storage.repositories.settings import SettingsRepository


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin/settings", tags=["Settings"])

BANK_VISIBILITY_KEY = "showBankDetails"
BANK_VISIBILITY_DESCRIPTION = "Controls whether bank transfer option is shown to users during deposit"


def read_bank_visibility(db: Session) -> bool:
    """Stored flag; shown unless an admin turned it off."""
    return bool(SettingsRepository(db).get_value(BANK_VISIBILITY_KEY, True))


@router.get("/bank-visibility")
def get_bank_visibility(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success(
        {BANK_VISIBILITY_KEY: read_bank_visibility(db)},
        "Bank details visibility setting retrieved successfully",
    )


@router.put("/bank-visibility")
def update_bank_visibility(
    body: Dict[str, Any] = Body(...),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    value = body.get(BANK_VISIBILITY_KEY)
    if not isinstance(value, bool):
        raise ValidationError(f"{BANK_VISIBILITY_KEY} must be a boolean value", fields=[BANK_VISIBILITY_KEY])

    repository = SettingsRepository(db)
    repository.set_value(BANK_VISIBILITY_KEY, value, BANK_VISIBILITY_DESCRIPTION)
    repository.commit(BANK_VISIBILITY_KEY)
    logger.info(f"Bank visibility set to {value} by {admin.id}")

    return success({BANK_VISIBILITY_KEY: value}, "Bank details visibility setting updated successfully")
