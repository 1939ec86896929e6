"""
Admin view of user accounts.

Listing, detail with balance, and deletion. Deleting a user
removes the account record only; cash transactions and orders
stay in the ledgers for audit.
"""

import logging
import math
import uuid
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from accounting.service import BalanceService
from core.clock import to_iso8601
from core.exceptions import NotFoundError
from storage.models.accounts import User
from storage.repositories.ledger import CashTransactionRepository
from storage.repositories.users import UserRepository


logger = logging.getLogger(__name__)


def user_to_admin_dict(user: User) -> Dict[str, Any]:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "aadharNo": user.aadhar_no,
        "pan": user.pan,
        "bankName": user.bank_name,
        "accountNumber": user.account_number,
        "accountHolder": user.account_holder,
        "ifscCode": user.ifsc_code,
        "role": user.role,
        "status": user.status,
        "isVerified": user.is_verified,
        "rejectionReason": user.rejection_reason,
        "lastLogin": to_iso8601(user.last_login),
        "createdAt": to_iso8601(user.created_at),
        "updatedAt": to_iso8601(user.updated_at),
    }


class UserDirectory:
    """Read and delete accounts on behalf of an admin."""

    def __init__(self, session: Session):
        self.users = UserRepository(session)
        self.transactions = CashTransactionRepository(session)
        self.balances = BalanceService(session)

    def list_users(self, page: int = 1, limit: int = 50) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        """
        One page of users, newest first.

        Returns:
            (user rows with lastTransaction, pagination block)
        """
        users, total = self.users.list_page(page, limit)
        last = self.transactions.last_timestamps(u.id for u in users)

        rows = []
        for user in users:
            row = user_to_admin_dict(user)
            row["lastTransaction"] = to_iso8601(last.get(user.id))
            rows.append(row)

        pagination = {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        }
        return rows, pagination

    def detail(self, user_id: uuid.UUID) -> Dict[str, Any]:
        user = self._get(user_id)
        data = user_to_admin_dict(user)
        data.update(
            gender=user.gender,
            dob=user.dob.isoformat() if user.dob else None,
            address=user.address,
            nomineeName=user.nominee_name,
            nomineeRelation=user.nominee_relation,
            nomineeDob=user.nominee_dob.isoformat() if user.nominee_dob else None,
            aadharPhoto=user.aadhar_photo,
            panPhoto=user.pan_photo,
            userPhoto=user.user_photo,
            passbookPhoto=user.passbook_photo,
        )
        data["balanceInfo"] = self.balances.compute_balance(user.id).to_dict()
        return data

    def delete(self, user_id: uuid.UUID) -> None:
        user = self._get(user_id)
        self.users.delete(user)
        self.users.commit()
        logger.info(f"User {user_id} deleted; ledger records retained")

    def _get(self, user_id: uuid.UUID) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user
