"""
Account Domain ORM Models.

============================================================
PURPOSE
============================================================
The user account record: identity, KYC documents, bank and
nominee details, role and verification state.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Created unverified at registration
- Verified only by the approval workflow
- Mutated by access control and the approval workflow only
- Optimistic concurrency through `version`

============================================================
"""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin, ValueEnum


class UserRole(ValueEnum):
    USER = "user"
    ADMIN = "admin"


class UserStatus(ValueEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class Gender(ValueEnum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class User(Base, TimestampMixin):
    """
    User account.

    ============================================================
    UNIQUENESS
    ============================================================
    email, phone, pan and aadhar_no are each unique.

    ============================================================
    CREDENTIAL
    ============================================================
    Only the hash is stored. The registration credential is
    withheld; the user receives a fresh one on approval.

    ============================================================
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="User identifier"
    )

    # Identity
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True, index=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[str] = mapped_column(String(10), nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)

    # KYC
    aadhar_no: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    pan: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    aadhar_photo: Mapped[str] = mapped_column(String(500), nullable=False, comment="Document URL")
    pan_photo: Mapped[str] = mapped_column(String(500), nullable=False, comment="Document URL")
    user_photo: Mapped[str] = mapped_column(String(500), nullable=False, comment="Document URL")
    passbook_photo: Mapped[str] = mapped_column(String(500), nullable=False, comment="Document URL")

    # Nominee
    nominee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    nominee_relation: Mapped[str] = mapped_column(String(50), nullable=False)
    nominee_dob: Mapped[date] = mapped_column(Date, nullable=False)

    # Bank
    bank_name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    account_holder: Mapped[str] = mapped_column(String(200), nullable=False)
    ifsc_code: Mapped[str] = mapped_column(String(20), nullable=False)

    # Access
    role: Mapped[str] = mapped_column(String(10), nullable=False, default=UserRole.USER.value)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=UserStatus.ACTIVE.value)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role}, verified={self.is_verified})>"
