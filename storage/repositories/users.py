"""
User Repository.

============================================================
PURPOSE
============================================================
Persistence for user accounts.

- Lookup by id and email
- Duplicate detection across the unique identity fields
- Paginated listing for the admin console
- Login bookkeeping

============================================================
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storage.models.accounts import Gender, User, UserRole, UserStatus
from storage.repositories.base import BaseRepository


# Fields that must be unique across accounts, in reporting order
UNIQUE_IDENTITY_FIELDS = ("email", "phone", "pan", "aadhar_no")

# Fields a client may never set through a generic update
PROTECTED_FIELDS = frozenset({"id", "role", "status", "is_verified", "password_hash", "version"})


class UserRepository(BaseRepository[User]):
    """Repository for User records."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, User, "UserRepository")

    # =========================================================
    # CREATE
    # =========================================================

    def create(self, **fields: Any) -> User:
        """
        Insert a new user.

        Raises:
            InvalidEnumValueError: role, status or gender outside its domain
            DuplicateRecordError: unique identity field already used
        """
        fields["role"] = self._validate_enum("role", fields.get("role", UserRole.USER), UserRole.values(), "create")
        fields["status"] = self._validate_enum("status", fields.get("status", UserStatus.ACTIVE), UserStatus.values(), "create")
        fields["gender"] = self._validate_enum("gender", fields.get("gender"), Gender.values(), "create")
        return self._add(User(**fields))

    # =========================================================
    # READ
    # =========================================================

    def get(self, user_id: uuid.UUID) -> Optional[User]:
        return self._get_by_id(user_id)

    def get_fresh(self, user_id: uuid.UUID) -> Optional[User]:
        """Reload from the database, discarding this session's cached copy."""
        try:
            return self._session.get(User, user_id, populate_existing=True)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_fresh", user_id)
            raise

    def get_or_raise(self, user_id: uuid.UUID) -> User:
        return self._get_by_id_or_raise(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        return self._execute_scalar(stmt)

    def find_conflict(
        self,
        values: Dict[str, Any],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[str]:
        """
        Find the first unique identity field already taken.

        Args:
            values: Candidate values keyed by field name
            exclude_id: Ignore this user (profile updates)

        Returns:
            Name of the colliding field, or None
        """
        candidates = {k: v for k, v in values.items() if k in UNIQUE_IDENTITY_FIELDS and v}
        if not candidates:
            return None

        stmt = select(User).where(
            or_(*(getattr(User, field) == value for field, value in candidates.items()))
        )
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)

        for existing in self._execute_query(stmt):
            for field in UNIQUE_IDENTITY_FIELDS:
                if field in candidates and getattr(existing, field) == candidates[field]:
                    return field
        return None

    def list_page(self, page: int = 1, limit: int = 50) -> Tuple[List[User], int]:
        """
        Users newest first.

        Returns:
            (users on the page, total user count)
        """
        page = max(page, 1)
        limit = max(min(limit, 200), 1)
        stmt = (
            select(User)
            .order_by(User.created_at.desc(), User.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return self._execute_query(stmt), self._count()

    def count_by_role(self, role: UserRole = UserRole.USER) -> int:
        return self._count(User.role == role.value)

    def count_created_between(self, start: datetime, end: datetime, role: UserRole = UserRole.USER) -> int:
        return self._count(User.role == role.value, User.created_at >= start, User.created_at < end)

    def ids_logged_in_between(self, start: datetime, end: Optional[datetime] = None) -> Set[uuid.UUID]:
        stmt = select(User.id).where(User.last_login.is_not(None), User.last_login >= start)
        if end is not None:
            stmt = stmt.where(User.last_login < end)
        return {row[0] for row in self._execute_rows(stmt)}

    def names_by_id(self, user_ids: Set[uuid.UUID]) -> Dict[uuid.UUID, Tuple[str, str]]:
        """Map user id -> (name, email) for display rows."""
        if not user_ids:
            return {}
        stmt = select(User.id, User.name, User.email).where(User.id.in_(user_ids))
        return {row[0]: (row[1], row[2]) for row in self._execute_rows(stmt)}

    # =========================================================
    # UPDATE
    # =========================================================

    def update_fields(self, user: User, changes: Dict[str, Any]) -> User:
        """
        Apply client-editable changes.

        Protected fields (role, status, verification, credential)
        are ignored here; they have dedicated methods.
        """
        for field, value in changes.items():
            if field in PROTECTED_FIELDS or not hasattr(User, field):
                continue
            if field == "gender":
                value = self._validate_enum("gender", value, Gender.values(), "update")
            setattr(user, field, value)
        self._flush("update", user.id)
        return user

    def set_password_hash(self, user: User, password_hash: str) -> None:
        user.password_hash = password_hash
        self._flush("set_password", user.id)

    def mark_verified(self, user: User, password_hash: str) -> None:
        user.password_hash = password_hash
        user.is_verified = True
        user.rejection_reason = None
        self._flush("approve", user.id)

    def mark_rejected(self, user: User, reason: Optional[str]) -> None:
        user.is_verified = False
        user.rejection_reason = reason
        self._flush("reject", user.id)

    def record_login(self, user: User, at: datetime) -> None:
        user.last_login = at
        self._flush("record_login", user.id)

    # =========================================================
    # DELETE
    # =========================================================

    def delete(self, user: User) -> None:
        """Delete the account record. Ledgers are left in place."""
        self._delete(user)
