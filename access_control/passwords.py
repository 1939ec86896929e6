"""
Password hashing and credential generation.

Hashes use passlib's pbkdf2_sha256 scheme. Generated credentials
are alphanumeric and drawn from the `secrets` module.
"""

import secrets
import string

from passlib.context import CryptContext


CREDENTIAL_LENGTH = 12
CREDENTIAL_ALPHABET = string.ascii_letters + string.digits

_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return _context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """False for a mismatch or an unreadable stored hash."""
    if not password or not password_hash:
        return False
    try:
        return _context.verify(password, password_hash)
    except ValueError:
        return False


def generate_password(length: int = CREDENTIAL_LENGTH) -> str:
    return "".join(secrets.choice(CREDENTIAL_ALPHABET) for _ in range(length))
