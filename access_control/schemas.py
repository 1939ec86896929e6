"""
Pydantic Schemas for account endpoints.

Wire names are camelCase; models accept either spelling.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================
# AUTH
# =============================================================

class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None


# =============================================================
# PROFILE
# =============================================================

class ProfileUpdateRequest(CamelModel):
    personal: Optional[Dict[str, Any]] = None
    kyc: Optional[Dict[str, Any]] = None
    bank: Optional[Dict[str, Any]] = None


# =============================================================
# CASH AND ORDERS
# =============================================================

class CashRequest(CamelModel):
    type: str = Field(..., description="DEPOSIT or WITHDRAWAL")
    amount: Any
    payment_method: Optional[str] = None
    reason: Optional[str] = None
