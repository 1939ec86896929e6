"""
Pydantic Schemas for the approval endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000, description="Shown to the user in the notice")
