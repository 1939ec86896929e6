"""
Access Control Service.

============================================================
PURPOSE
============================================================
register, login, change_password.

REGISTER:
- Every identity, KYC, nominee and bank field is required
- All four documents are required
- email, phone, PAN and Aadhar must be unused
- The credential is generated here and withheld; the user
  receives a fresh one when an admin approves the profile

PROFILE:
- Partial personal, kyc and bank updates; uniqueness is
  re-checked against other accounts

LOGIN:
- Unknown email and wrong password fail identically (401)
- An unverified account fails with 402 before the password
  is checked
- Success updates lastLogin and issues a session token

============================================================
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from access_control.documents import DocumentStore, UploadedDocument
from access_control.passwords import generate_password, hash_password, verify_password
from access_control.tokens import TokenIssuer
from core.clock import ClockProtocol, SystemClock, to_iso8601
from core.exceptions import (
    DuplicateUserError,
    ForbiddenError,
    InvalidCredentialError,
    NotificationDeliveryError,
    NotVerifiedError,
    ServiceNotConfiguredError,
    ValidationError,
)
from notifications import templates
from notifications.gateway import NotificationGateway
from storage.models.accounts import Gender, User, UserStatus
from storage.repositories.exceptions import DuplicateRecordError
from storage.repositories.users import UserRepository


logger = logging.getLogger(__name__)


# Wire name -> column, in the order they are reported when missing
REGISTRATION_FIELDS = {
    "email": "email",
    "firstName": None,
    "lastName": None,
    "phone": "phone",
    "aadharNo": "aadhar_no",
    "pan": "pan",
    "gender": "gender",
    "dob": "dob",
    "nomineeName": "nominee_name",
    "nomineeRelation": "nominee_relation",
    "nomineeDob": "nominee_dob",
    "bankName": "bank_name",
    "accountNumber": "account_number",
    "accountHolder": "account_holder",
    "ifscCode": "ifsc_code",
    "address": "address",
}

DOCUMENT_FIELDS = {
    "aadharPhoto": "aadhar_photo",
    "panPhoto": "pan_photo",
    "userPhoto": "user_photo",
    "passbookPhoto": "passbook_photo",
}

# Column -> wire name, for duplicate messages
_WIRE_NAMES = {
    "email": "email",
    "phone": "phone",
    "pan": "PAN",
    "aadhar_no": "Aadhar number",
}


# ============================================================
# FIELD NORMALIZATION
# ============================================================

def normalize_email(value: str) -> str:
    email = (value or "").strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or "." not in domain or " " in email:
        raise ValidationError("Please provide a valid email address", fields=["email"])
    return email


def parse_date(field: str, value: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)", fields=[field])


def parse_gender(value: Any) -> str:
    gender = str(value or "").strip().lower()
    if gender not in Gender.values():
        raise ValidationError(
            f"gender must be one of: {', '.join(Gender.values())}",
            fields=["gender"],
        )
    return gender


def normalize_identity(column: str, value: Any) -> Any:
    """Canonical form of one user column."""
    if column == "email":
        return normalize_email(value)
    if column == "gender":
        return parse_gender(value)
    if column in ("dob", "nominee_dob"):
        return parse_date(column, value)
    value = str(value).strip()
    if column in ("pan", "ifsc_code"):
        return value.upper()
    if column == "aadhar_no":
        return value.replace(" ", "")
    return value


def duplicate_error(field: Optional[str]) -> DuplicateUserError:
    if field in _WIRE_NAMES:
        return DuplicateUserError(f"A user with this {_WIRE_NAMES[field]} already exists", field=field)
    return DuplicateUserError()


# ============================================================
# PROFILE
# ============================================================

# Section -> wire name -> column
PROFILE_SECTIONS = {
    "personal": {
        "name": "name",
        "email": "email",
        "phone": "phone",
        "gender": "gender",
        "dob": "dob",
        "address": "address",
    },
    "kyc": {
        "aadharNumber": "aadhar_no",
        "panNumber": "pan",
        "aadharPhoto": "aadhar_photo",
        "panPhoto": "pan_photo",
        "profilePhoto": "user_photo",
        "passbookPhoto": "passbook_photo",
    },
    "bank": {
        "name": "bank_name",
        "accountHolder": "account_holder",
        "accountNumber": "account_number",
        "ifsc": "ifsc_code",
    },
}


def profile_to_dict(user: User) -> Dict[str, Any]:
    return {
        "personal": {
            "name": user.name,
            "email": user.email,
            "phone": user.phone,
            "username": user.email.split("@")[0],
            "gender": user.gender,
            "dob": user.dob.isoformat() if user.dob else None,
            "address": user.address,
            "role": user.role,
            "status": user.status,
        },
        "kyc": {
            "aadharNumber": user.aadhar_no,
            "panNumber": user.pan,
            "aadharPhoto": user.aadhar_photo,
            "panPhoto": user.pan_photo,
            "profilePhoto": user.user_photo,
            "passbookPhoto": user.passbook_photo,
        },
        "bank": {
            "name": user.bank_name,
            "accountHolder": user.account_holder,
            "accountNumber": user.account_number,
            "ifsc": user.ifsc_code,
        },
        "security": {
            "lastLogin": to_iso8601(user.last_login),
            "isVerified": user.is_verified,
        },
    }


def personal_info(user: User) -> Dict[str, Any]:
    return {
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "aadharNo": user.aadhar_no,
        "pan": user.pan,
    }


def profile_changes(sections: Mapping[str, Optional[Mapping[str, Any]]]) -> Dict[str, Any]:
    """
    Flatten a partial profile payload into column changes.

    Blank values are skipped; role, status and verification are
    not reachable from here.
    """
    changes: Dict[str, Any] = {}
    for section, columns in PROFILE_SECTIONS.items():
        block = sections.get(section) or {}
        for wire_name, column in columns.items():
            value = block.get(wire_name)
            if value is None or str(value).strip() == "":
                continue
            changes[column] = normalize_identity(column, value)
    return changes


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str


class AccessService:
    """Account registration and authentication."""

    def __init__(
        self,
        session: Session,
        tokens: TokenIssuer,
        clock: Optional[ClockProtocol] = None,
    ):
        self.users = UserRepository(session)
        self.tokens = tokens
        self.clock = clock or SystemClock()

    # =========================================================
    # REGISTER
    # =========================================================

    async def register(
        self,
        form: Mapping[str, Any],
        documents: Mapping[str, Optional[UploadedDocument]],
        store: DocumentStore,
    ) -> User:
        """
        Create an unverified account.

        Args:
            form: Wire-named form fields; any client password is ignored
            documents: Uploaded files keyed by document field
            store: Document storage

        Raises:
            ValidationError: missing or malformed field or document
            DuplicateUserError: email, phone, PAN or Aadhar in use
            ServiceNotConfiguredError: document storage unavailable
        """
        missing_docs = [name for name in DOCUMENT_FIELDS if not documents.get(name)]
        if missing_docs:
            raise ValidationError(
                "Please upload all required documents (Aadhar, PAN, User photo, and Passbook photo)",
                fields=missing_docs,
            )

        missing = [name for name in REGISTRATION_FIELDS if not str(form.get(name) or "").strip()]
        if missing:
            raise ValidationError("Please provide all required fields", fields=missing)

        fields: Dict[str, Any] = {
            column: normalize_identity(column, form[name])
            for name, column in REGISTRATION_FIELDS.items()
            if column is not None
        }
        fields["name"] = f"{form['firstName'].strip()} {form['lastName'].strip()}"

        conflict = self.users.find_conflict(fields)
        if conflict:
            raise duplicate_error(conflict)

        if not store.configured:
            raise ServiceNotConfiguredError("File upload service", "Please contact support.")
        for name in DOCUMENT_FIELDS:
            store.validate(documents[name])
        for name, column in DOCUMENT_FIELDS.items():
            fields[column] = await store.upload(documents[name])

        fields["password_hash"] = hash_password(generate_password())
        fields["is_verified"] = False

        try:
            user = self.users.create(**fields)
            self.users.commit()
        except DuplicateRecordError as e:
            # Lost a race with a concurrent registration
            raise duplicate_error(e.constraint_field)

        logger.info(f"User registered: {user.id}")
        return user

    # =========================================================
    # LOGIN
    # =========================================================

    def login(self, email: Optional[str], password: Optional[str]) -> LoginResult:
        """
        Verify a credential and issue a session token.

        Raises:
            ValidationError: email or password missing
            InvalidCredentialError: unknown email or wrong password
            NotVerifiedError: account not approved yet
            ForbiddenError: account suspended
        """
        email = (email or "").strip().lower()
        password = (password or "").strip()
        if not email or not password:
            raise ValidationError("Please provide email and password", fields=["email", "password"])

        user = self.users.get_by_email(email)
        if user is None:
            logger.info("Login failed: invalid credential")
            raise InvalidCredentialError()
        if not user.is_verified:
            raise NotVerifiedError()
        if not verify_password(password, user.password_hash):
            logger.info(f"Login failed for {user.id}: invalid credential")
            raise InvalidCredentialError()
        if user.status == UserStatus.SUSPENDED.value:
            raise ForbiddenError("Your account is suspended")

        self.users.record_login(user, self.clock.now())
        self.users.commit(user.id)

        token = self.tokens.issue(user.id, user.role)
        logger.info(f"User logged in: {user.id}")
        return LoginResult(user=user, token=token)

    # =========================================================
    # CHANGE PASSWORD
    # =========================================================

    def change_password(self, user: User, old_password: Optional[str], new_password: Optional[str]) -> None:
        """
        Replace the credential after checking the current one.

        Raises:
            ValidationError: missing field, or new equals old
            InvalidCredentialError: current password wrong
        """
        old_password = (old_password or "").strip()
        new_password = (new_password or "").strip()
        if not old_password or not new_password:
            raise ValidationError(
                "Please provide old password and new password",
                fields=["oldPassword", "newPassword"],
            )
        if old_password == new_password:
            raise ValidationError("Old password and new password cannot be same", fields=["newPassword"])
        if not verify_password(old_password, user.password_hash):
            raise InvalidCredentialError("Invalid old password")

        self.users.set_password_hash(user, hash_password(new_password))
        self.users.commit(user.id)
        logger.info(f"Password changed for {user.id}")

    # =========================================================
    # PROFILE
    # =========================================================

    def update_profile(self, user: User, sections: Mapping[str, Optional[Mapping[str, Any]]]) -> User:
        """
        Apply a partial personal / kyc / bank update.

        Raises:
            ValidationError: nothing to update, or malformed value
            DuplicateUserError: new email, phone, PAN or Aadhar in use
        """
        changes = profile_changes(sections)
        if not changes:
            raise ValidationError("No profile fields provided")

        conflict = self.users.find_conflict(changes, exclude_id=user.id)
        if conflict:
            raise duplicate_error(conflict)

        try:
            self.users.update_fields(user, changes)
            self.users.commit(user.id)
        except DuplicateRecordError as e:
            raise duplicate_error(e.constraint_field)

        logger.info(f"Profile updated for {user.id}: {sorted(changes)}")
        return user


# ============================================================
# REGISTRATION NOTICE
# ============================================================

async def send_registration_notice(gateway: NotificationGateway, email: str, name: str) -> None:
    """
    Tell a new user their profile is under review.

    Runs after the registration response; a delivery failure is
    logged and does not affect the account.
    """
    message = templates.registration_received(name)
    try:
        result = await gateway.send(email, message.subject, message.text, message.html)
        logger.info(f"Registration notice sent via {result.provider}")
    except NotificationDeliveryError as e:
        logger.error(f"Registration notice not delivered (account kept): {e.message}")
