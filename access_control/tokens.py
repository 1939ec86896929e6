"""
Session tokens.

============================================================
PURPOSE
============================================================
HS256 JWTs carrying the user id and role, delivered as an
HTTP-only cookie.

COOKIE FLAGS:
- production: secure, SameSite=None (cross-site frontend)
- development: not secure, SameSite=Lax

============================================================
"""

import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from core.config import AuthConfig
from core.exceptions import InvalidCredentialError


@dataclass(frozen=True)
class TokenClaims:
    user_id: uuid.UUID
    role: str
    expires_at: int


class TokenIssuer:
    """Signs and verifies session tokens."""

    def __init__(self, config: AuthConfig):
        self._config = config

    @property
    def cookie_name(self) -> str:
        return self._config.cookie_name

    @property
    def ttl_seconds(self) -> int:
        return self._config.token_expiry_seconds

    def issue(self, user_id: uuid.UUID, role: str, now: Optional[float] = None) -> str:
        now = int(now if now is not None else time.time())
        claims = {
            "sub": str(user_id),
            "role": role,
            "iat": now,
            "exp": now + self._config.token_expiry_seconds,
        }
        return jwt.encode(claims, self._config.token_secret, algorithm=self._config.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and check a token.

        Raises:
            InvalidCredentialError: bad signature, expired, or malformed
        """
        try:
            payload = jwt.decode(token, self._config.token_secret, algorithms=[self._config.algorithm])
            return TokenClaims(
                user_id=uuid.UUID(payload["sub"]),
                role=payload.get("role", ""),
                expires_at=int(payload["exp"]),
            )
        except (JWTError, KeyError, ValueError):
            raise InvalidCredentialError("Invalid or expired session")


def cookie_options(is_production: bool, max_age: Optional[int] = None) -> Dict[str, Any]:
    """Keyword arguments for Response.set_cookie / delete_cookie."""
    options: Dict[str, Any] = {
        "httponly": True,
        "secure": is_production,
        "samesite": "none" if is_production else "lax",
        "path": "/",
    }
    if max_age is not None:
        options["max_age"] = max_age
    return options
