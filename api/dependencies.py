"""
API - Shared Dependencies.

Collaborators are built once at startup and stored on
app.state; routes reach them through these providers so tests
can swap any of them.
"""

from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from access_control.documents import DocumentStore
from access_control.tokens import TokenIssuer
from approval.locks import UserLockRegistry
from core.clock import ClockProtocol
from core.config import AppSettings
from notifications.gateway import NotificationGateway


# =============================================================
# HELPER: Database dependency
# =============================================================

def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


# =============================================================
# HELPER: Application collaborators
# =============================================================

def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_gateway(request: Request) -> NotificationGateway:
    return request.app.state.gateway


def get_documents(request: Request) -> DocumentStore:
    return request.app.state.documents


def get_clock(request: Request) -> ClockProtocol:
    return request.app.state.clock


def get_locks(request: Request) -> UserLockRegistry:
    return request.app.state.locks


def get_tokens(request: Request) -> TokenIssuer:
    return request.app.state.tokens
