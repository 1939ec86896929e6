"""
FastAPI Router for account endpoints.

Provides REST API under /api/v1/user:
- Registration (multipart, with KYC documents)
- Login / logout / change password
- Profile and account views
- Cash requests and trade history of the caller
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from access_control.dependencies import get_current_user
from access_control.documents import DocumentStore, UploadedDocument
from access_control.schemas import (
    CashRequest,
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdateRequest,
)
from access_control.service import (
    DOCUMENT_FIELDS,
    AccessService,
    personal_info,
    profile_to_dict,
    send_registration_notice,
)
from access_control.tokens import TokenIssuer, cookie_options
from accounting.positions import PositionService, order_to_dict
from accounting.transactions import CashLedgerService, transaction_to_dict
from api.dependencies import (
    get_clock,
    get_db,
    get_documents,
    get_gateway,
    get_settings,
    get_tokens,
)
from api.schemas import success
from core.clock import ClockProtocol, to_iso8601
from core.config import AppSettings
from notifications.gateway import NotificationGateway
from storage.models.accounts import User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/user", tags=["User"])

REGISTRATION_MESSAGE = (
    "Registration successful! Your profile approval request has been submitted. "
    "You will receive an email notification once your profile is reviewed by the admin."
)


# =============================================================
# HELPER: Service instance
# =============================================================

def get_access_service(
    db: Session = Depends(get_db),
    tokens: TokenIssuer = Depends(get_tokens),
    clock: ClockProtocol = Depends(get_clock),
) -> AccessService:
    return AccessService(db, tokens, clock)


async def _read_documents(form) -> Dict[str, Optional[UploadedDocument]]:
    documents: Dict[str, Optional[UploadedDocument]] = {}
    for name in DOCUMENT_FIELDS:
        upload = form.get(name)
        if not isinstance(upload, UploadFile) or not upload.filename:
            documents[name] = None
            continue
        documents[name] = UploadedDocument(
            field=name,
            filename=upload.filename,
            content_type=upload.content_type,
            content=await upload.read(),
        )
    return documents


# =============================================================
# REGISTRATION AND SESSION ENDPOINTS
# =============================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    background: BackgroundTasks,
    service: AccessService = Depends(get_access_service),
    store: DocumentStore = Depends(get_documents),
    gateway: NotificationGateway = Depends(get_gateway),
):
    """
    Register a new account from a multipart form.

    The account starts unverified. The confirmation email is sent
    after the response and its failure does not undo registration.
    """
    form = await request.form()
    fields = {key: value for key, value in form.items() if isinstance(value, str)}
    documents = await _read_documents(form)

    user = await service.register(fields, documents, store)
    background.add_task(send_registration_notice, gateway, user.email, user.name)

    return success(
        {"userId": str(user.id), "email": user.email, "isVerified": user.is_verified},
        REGISTRATION_MESSAGE,
    )


@router.post("/login")
def login(
    body: LoginRequest,
    response: Response,
    service: AccessService = Depends(get_access_service),
    settings: AppSettings = Depends(get_settings),
):
    result = service.login(body.email, body.password)
    response.set_cookie(
        service.tokens.cookie_name,
        result.token,
        **cookie_options(settings.server.is_production, max_age=service.tokens.ttl_seconds),
    )
    user = result.user
    return success(
        {"role": user.role, "isVerified": user.is_verified, "email": user.email},
        "login success",
    )


@router.post("/logout")
def logout(
    response: Response,
    tokens: TokenIssuer = Depends(get_tokens),
    settings: AppSettings = Depends(get_settings),
):
    options = cookie_options(settings.server.is_production)
    options.pop("max_age", None)
    response.delete_cookie(tokens.cookie_name, **options)
    return success(None, "logout success")


@router.post("/change-password")
def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    service: AccessService = Depends(get_access_service),
):
    service.change_password(user, body.old_password, body.new_password)
    return success(None, "change password success")


# =============================================================
# PROFILE ENDPOINTS
# =============================================================

@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return success(profile_to_dict(user), "Profile retrieved successfully")


@router.put("/profile")
def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    service: AccessService = Depends(get_access_service),
):
    updated = service.update_profile(user, body.model_dump())
    return success(profile_to_dict(updated), "Profile updated successfully")


@router.get("/last-login")
def get_last_login(user: User = Depends(get_current_user)):
    return success(to_iso8601(user.last_login), "Last login retrieved successfully")


@router.get("/personal-info")
def get_personal_info(user: User = Depends(get_current_user)):
    return success(personal_info(user), "Personal information retrieved successfully")


# =============================================================
# CASH LEDGER ENDPOINTS
# =============================================================

@router.get("/transactions")
def list_transactions(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: ClockProtocol = Depends(get_clock),
):
    history = CashLedgerService(db, clock).history(user.id)
    return success([transaction_to_dict(t) for t in history], "Transactions retrieved successfully")


@router.post("/transactions", status_code=status.HTTP_201_CREATED)
def request_transaction(
    body: CashRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: ClockProtocol = Depends(get_clock),
):
    txn = CashLedgerService(db, clock).request(
        user.id,
        body.type,
        body.amount,
        payment_method=body.payment_method,
        reason=body.reason,
    )
    kind = txn.type.lower()
    return success(transaction_to_dict(txn), f"The {kind} request was submitted successfully")


# =============================================================
# TRADE HISTORY ENDPOINTS
# =============================================================

@router.get("/orders")
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status", description="OPEN, CLOSED or All"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: ClockProtocol = Depends(get_clock),
):
    service = PositionService(db, clock)
    orders = service.list_orders(user.id, status_filter)
    return success(
        {
            "trades": [order_to_dict(o) for o in orders],
            "summary": service.summary(user.id).to_dict(),
        },
        "Order history retrieved successfully",
    )
