"""
FastAPI Router for account approval.

POST /api/v1/admin/users/{user_id}/approve
POST /api/v1/admin/users/{user_id}/reject

A failed notification answers 500 with emailSent=false and the
user unchanged; see api.errors for the rendering.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from access_control.dependencies import require_admin
from api.dependencies import get_db, get_gateway, get_locks
from api.schemas import success
from approval.locks import UserLockRegistry
from approval.schemas import RejectRequest
from approval.service import ApprovalWorkflow
from notifications.gateway import NotificationGateway
from storage.models.accounts import User


router = APIRouter(prefix="/api/v1/admin/users", tags=["Approval"])


def get_workflow(
    db: Session = Depends(get_db),
    gateway: NotificationGateway = Depends(get_gateway),
    locks: UserLockRegistry = Depends(get_locks),
) -> ApprovalWorkflow:
    return ApprovalWorkflow(db, gateway, locks)


def _public(outcome) -> dict:
    data = outcome.to_dict()
    return {key: data[key] for key in ("userId", "isVerified", "emailSent")}


@router.post("/{user_id}/approve")
async def approve_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    outcome = await workflow.approve(user_id)
    return success(
        _public(outcome),
        "User approved successfully. Login credentials have been sent to the user's email.",
    )


@router.post("/{user_id}/reject")
async def reject_user(
    user_id: uuid.UUID,
    body: Optional[RejectRequest] = Body(None),
    admin: User = Depends(require_admin),
    workflow: ApprovalWorkflow = Depends(get_workflow),
):
    outcome = await workflow.reject(user_id, body.reason if body else None)
    return success(
        _public(outcome),
        "User rejected successfully. Rejection notification has been sent to the user's email.",
    )
