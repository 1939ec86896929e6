"""
Approval Workflow.

============================================================
PURPOSE
============================================================
Gate a user's verified state on successful notification.

approve(user_id):
    1. Generate a fresh credential
    2. Email it through the notification gateway
    3. Only then store its hash and set is_verified=True

reject(user_id, reason):
    1. Email the rejection notice
    2. Only then set is_verified=False and record the reason

============================================================
FAILURE CONTRACT
============================================================
- Delivery failure: no user field changes, the caller gets
  ApprovalNotDeliveredError (emailSent: false)
- Decisions on one user are serialized by a per-user lock
- A concurrent write from elsewhere fails the version check
  and surfaces as ConflictError

============================================================
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from access_control.passwords import generate_password, hash_password
from approval.locks import UserLockRegistry
from core.exceptions import (
    ApprovalNotDeliveredError,
    ConflictError,
    NotFoundError,
    NotificationDeliveryError,
)
from notifications import templates
from notifications.gateway import NotificationGateway
from notifications.models import DeliveryResult
from storage.models.accounts import User
from storage.repositories.exceptions import StaleRecordError
from storage.repositories.users import UserRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalOutcome:
    """Result of a delivered decision."""

    user_id: uuid.UUID
    is_verified: bool
    email_sent: bool
    provider: Optional[str] = None
    message_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": str(self.user_id),
            "isVerified": self.is_verified,
            "emailSent": self.email_sent,
            "provider": self.provider,
            "messageId": self.message_id,
        }


class ApprovalWorkflow:
    """Fail-closed approve / reject of user accounts."""

    def __init__(
        self,
        session: Session,
        gateway: NotificationGateway,
        locks: UserLockRegistry,
    ):
        self.session = session
        self.users = UserRepository(session)
        self.gateway = gateway
        self.locks = locks

    async def approve(self, user_id: uuid.UUID) -> ApprovalOutcome:
        """
        Issue credentials and verify the user.

        Raises:
            NotFoundError: user does not exist
            ApprovalNotDeliveredError: email failed, nothing changed
            ConflictError: user changed concurrently, nothing changed
        """
        async with self.locks.lock_for(user_id):
            user = self._load(user_id)
            credential = generate_password()
            message = templates.approval_with_credentials(user.name, user.email, credential)

            try:
                delivery = await self.gateway.send(user.email, message.subject, message.text, message.html)
            except NotificationDeliveryError as e:
                logger.error(f"Approval of {user_id} cancelled, email not delivered: {e.message}")
                raise ApprovalNotDeliveredError("approval", user.id, user.is_verified, e)

            try:
                self.users.mark_verified(user, hash_password(credential))
                self.users.commit(user.id)
            except StaleRecordError:
                raise self._conflict(user_id, "approval", delivery)

            logger.info(f"User {user_id} approved, credentials sent via {delivery.provider}")
            return ApprovalOutcome(
                user_id=user.id,
                is_verified=True,
                email_sent=True,
                provider=delivery.provider,
                message_id=delivery.message_id,
            )

    async def reject(self, user_id: uuid.UUID, reason: Optional[str] = None) -> ApprovalOutcome:
        """
        Notify and mark the user unverified.

        Raises:
            NotFoundError: user does not exist
            ApprovalNotDeliveredError: email failed, nothing changed
            ConflictError: user changed concurrently, nothing changed
        """
        reason = (reason or "").strip() or None

        async with self.locks.lock_for(user_id):
            user = self._load(user_id)
            message = templates.rejection(user.name, reason)

            try:
                delivery = await self.gateway.send(user.email, message.subject, message.text, message.html)
            except NotificationDeliveryError as e:
                logger.error(f"Rejection of {user_id} cancelled, email not delivered: {e.message}")
                raise ApprovalNotDeliveredError("rejection", user.id, user.is_verified, e)

            try:
                self.users.mark_rejected(user, reason)
                self.users.commit(user.id)
            except StaleRecordError:
                raise self._conflict(user_id, "rejection", delivery)

            logger.info(f"User {user_id} rejected, notice sent via {delivery.provider}")
            return ApprovalOutcome(
                user_id=user.id,
                is_verified=False,
                email_sent=True,
                provider=delivery.provider,
                message_id=delivery.message_id,
            )

    def _load(self, user_id: uuid.UUID) -> User:
        user = self.users.get_fresh(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    def _conflict(user_id: uuid.UUID, action: str, delivery: DeliveryResult) -> ConflictError:
        # Notice already delivered
        logger.error(
            f"User {user_id} was modified during the {action}; decision discarded after the "
            f"notice went out via {delivery.provider} (message {delivery.message_id or 'unknown'})"
        )
        return ConflictError(
            "User was modified by another request. The notification was sent but the "
            "decision was not saved; please retry.",
            context={
                "user_id": str(user_id),
                "provider": delivery.provider,
                "message_id": delivery.message_id,
            },
        )
