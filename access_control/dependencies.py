"""
Request authentication.

The session token is read from the accessToken cookie, or from
an "Authorization: Bearer" header for non-browser clients.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from access_control.tokens import TokenIssuer
from api.dependencies import get_db, get_tokens
from core.exceptions import ForbiddenError, InvalidCredentialError
from storage.models.accounts import User, UserStatus
from storage.repositories.users import UserRepository


def _extract_token(request: Request, cookie_name: str) -> Optional[str]:
    token = request.cookies.get(cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    tokens: TokenIssuer = Depends(get_tokens),
) -> User:
    """
    Resolve the authenticated user.

    Raises:
        InvalidCredentialError: no token, bad token, or user gone
        ForbiddenError: account suspended
    """
    token = _extract_token(request, tokens.cookie_name)
    if not token:
        raise InvalidCredentialError("Unauthorized request")

    claims = tokens.verify(token)
    user = UserRepository(db).get(claims.user_id)
    if user is None:
        raise InvalidCredentialError("Invalid or expired session")
    if user.status == UserStatus.SUSPENDED.value:
        raise ForbiddenError("Your account is suspended")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError()
    return user
