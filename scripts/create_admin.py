"""
Scripts - Create Admin.

============================================================
RESPONSIBILITY
============================================================
Bootstraps a fresh database with a verified admin account.

- Creates the schema if missing
- Refuses to overwrite an existing account

============================================================
USAGE
============================================================
python -m scripts.create_admin --email admin@example.com --name "Ops Admin"

Options:
  --password    Use this password instead of a generated one
  --phone       Contact number (unique)

============================================================
"""

import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

from access_control.passwords import generate_password, hash_password
from access_control.service import normalize_email
from core.config import load_settings
from core.exceptions import ValidationError
from core.logging_setup import setup_logging
from storage.database import Database
from storage.models.accounts import Gender, UserRole
from storage.repositories.exceptions import DuplicateRecordError
from storage.repositories.users import UserRepository


logger = logging.getLogger(__name__)

# Placeholder KYC values for the operator account
_PLACEHOLDER = "N/A"
_PLACEHOLDER_DATE = date(1970, 1, 1)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create a verified admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--phone", default="0000000000")
    parser.add_argument("--password", default=None, help="Generated when omitted")
    return parser


def create_admin(database: Database, email: str, name: str, phone: str, password: str) -> str:
    """
    Insert the admin account.

    Returns:
        The new user's id

    Raises:
        DuplicateRecordError: email or phone already used
    """
    with database.session_scope() as session:
        users = UserRepository(session)
        user = users.create(
            name=name,
            email=normalize_email(email),
            phone=phone,
            password_hash=hash_password(password),
            gender=Gender.OTHER,
            dob=_PLACEHOLDER_DATE,
            address=_PLACEHOLDER,
            aadhar_no=f"ADMIN-{phone}",
            pan=f"ADMIN-{phone}",
            aadhar_photo=_PLACEHOLDER,
            pan_photo=_PLACEHOLDER,
            user_photo=_PLACEHOLDER,
            passbook_photo=_PLACEHOLDER,
            nominee_name=_PLACEHOLDER,
            nominee_relation=_PLACEHOLDER,
            nominee_dob=_PLACEHOLDER_DATE,
            bank_name=_PLACEHOLDER,
            account_number=_PLACEHOLDER,
            account_holder=name,
            ifsc_code=_PLACEHOLDER,
            role=UserRole.ADMIN,
            is_verified=True,
        )
        return str(user.id)


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_format)

    database = Database(settings.database)
    database.create_all()

    password = args.password or generate_password()
    try:
        user_id = create_admin(database, args.email, args.name, args.phone, password)
    except (DuplicateRecordError, ValidationError) as e:
        logger.error(f"Admin not created: {e}")
        return 1
    finally:
        database.dispose()

    logger.info(f"Admin created: {user_id}")
    print(f"Admin account: {args.email}")
    if not args.password:
        print(f"Generated password: {password}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
