"""
Shared fixtures.

In-memory SQLite database, a fixed clock, fake email provider
and fake document store.
"""

import uuid
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from core.clock import MockClock
from core.config import AppSettings, AuthConfig, DatabaseConfig, ServerConfig
from notifications.gateway import NotificationGateway, ProviderRoute
from notifications.retry import SINGLE_ATTEMPT
from storage.database import Database
from storage.models.accounts import UserRole
from storage.models.ledger import TransactionStatus
from storage.repositories.ledger import CashTransactionRepository
from storage.repositories.users import UserRepository
from tests.fakes import NOW, FakeDocumentStore, FakeProvider, user_fields


# =============================================================
# DATABASE
# =============================================================

@pytest.fixture
def database():
    db = Database(DatabaseConfig(url="sqlite://"))
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    s = database.session()
    yield s
    s.close()


@pytest.fixture
def clock():
    return MockClock(NOW)


@pytest.fixture
def make_user(session):
    def _make(**overrides):
        user = UserRepository(session).create(**user_fields(**overrides))
        session.commit()
        return user
    return _make


@pytest.fixture
def make_cash(session):
    def _make(user_id: uuid.UUID, kind: str, amount: Any, status=TransactionStatus.COMPLETED, timestamp=None):
        txn = CashTransactionRepository(session).create(
            user_id=user_id,
            type=kind,
            amount=Decimal(str(amount)),
            status=status,
            timestamp=timestamp,
        )
        session.commit()
        return txn
    return _make


# =============================================================
# NOTIFICATIONS
# =============================================================

@pytest.fixture
def provider():
    return FakeProvider("fake")


@pytest.fixture
def gateway(provider):
    return NotificationGateway([ProviderRoute(provider, SINGLE_ATTEMPT)], sleep=AsyncMock())


# =============================================================
# APPLICATION
# =============================================================

@pytest.fixture
def settings():
    return AppSettings(
        server=ServerConfig(environment="test"),
        auth=AuthConfig(token_secret="test-secret"),
    )


@pytest.fixture
def documents():
    return FakeDocumentStore()


@pytest.fixture
def app(settings, database, gateway, documents, clock):
    return create_app(settings, database, gateway=gateway, documents=documents, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def admin(make_user):
    return make_user(role=UserRole.ADMIN, is_verified=True)
