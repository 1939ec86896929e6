"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the domain exceptions of the back office.

- Provides one exception hierarchy for every service
- Carries the HTTP status each error resolves to
- Includes context for debugging and structured logs

============================================================
EXCEPTION HIERARCHY
============================================================
BackOfficeError (base)
├── ValidationError                  400
│   └── InvalidRecipientError        400
├── DuplicateUserError               400
├── InvalidCredentialError           401
├── NotVerifiedError                 402
├── ForbiddenError                   403
├── NotFoundError                    404
├── ConflictError                    409
├── RateLimitedError                 429
├── NotificationDeliveryError        500
│   └── ApprovalNotDeliveredError    500
├── ServiceNotConfiguredError        500
└── InternalError                    500

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================
# BASE EXCEPTION
# ============================================================

class BackOfficeError(Exception):
    """
    Base exception for all back office errors.

    All exceptions carry:
    - status_code: HTTP status the error resolves to
    - context: for debugging
    - timestamp: when the error occurred
    """

    status_code: int = 500
    response_status: str = "error"

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        base = f"{type(self).__name__}({self.status_code}): {self.message}"
        return f"{base} | {ctx_str}" if ctx_str else base


# ============================================================
# CLIENT ERRORS
# ============================================================

class ValidationError(BackOfficeError):
    """Missing or malformed input."""

    status_code = 400
    response_status = "fail"

    def __init__(
        self,
        message: str,
        fields: Optional[List[str]] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if fields:
            context["fields"] = fields
        super().__init__(message, context=context, **kwargs)
        self.fields = fields or []


class InvalidRecipientError(ValidationError):
    """A notification had no usable recipient."""

    def __init__(self, message: str = "Email recipient is required"):
        super().__init__(message)


class DuplicateUserError(BackOfficeError):
    """A user with the same email, phone, PAN or Aadhar already exists."""

    status_code = 400
    response_status = "fail"

    def __init__(
        self,
        message: str = "User already exists with this email, phone, PAN, or Aadhar number",
        field: Optional[str] = None,
    ):
        super().__init__(message, context={"field": field} if field else None)
        self.field = field


class InvalidCredentialError(BackOfficeError):
    """
    Credential could not be verified.

    Unknown email and wrong password share this error and its
    message so callers cannot probe which accounts exist.
    """

    status_code = 401
    response_status = "fail"

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class NotVerifiedError(BackOfficeError):
    """Account exists but has not been approved yet."""

    status_code = 402
    response_status = "fail"

    def __init__(self, message: str = "Your account is not verified yet"):
        super().__init__(message)


class ForbiddenError(BackOfficeError):
    """Authenticated caller lacks the required role."""

    status_code = 403
    response_status = "fail"

    def __init__(self, message: str = "Admin access required"):
        super().__init__(message)


class NotFoundError(BackOfficeError):
    """Requested entity does not exist."""

    status_code = 404
    response_status = "fail"

    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found"
        super().__init__(
            message,
            context={"entity": entity, "id": str(entity_id)} if entity_id is not None else {"entity": entity},
        )
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(BackOfficeError):
    """Concurrent modification detected on commit."""

    status_code = 409
    response_status = "fail"


class RateLimitedError(BackOfficeError):
    """Too many requests from one client."""

    status_code = 429
    response_status = "fail"

    def __init__(self, message: str = "Too many requests, please try again later."):
        super().__init__(message)


# ============================================================
# SERVER ERRORS
# ============================================================

class NotificationDeliveryError(BackOfficeError):
    """
    Every notification provider failed or none is configured.

    Terminal for the caller: retries have already been exhausted
    inside the gateway.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        attempts: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if attempts:
            context["attempts"] = len(attempts)
        super().__init__(message, context=context, **kwargs)
        self.attempts = attempts or []


class ApprovalNotDeliveredError(NotificationDeliveryError):
    """
    Approval or rejection notice could not be delivered.

    The user record was left untouched.
    """

    def __init__(
        self,
        action: str,
        user_id: int,
        is_verified: bool,
        cause: NotificationDeliveryError,
    ):
        super().__init__(
            f"Failed to send {action} email. User status remains unchanged. "
            f"Please check email configuration and try again.",
            attempts=cause.attempts,
            context={"action": action, "user_id": user_id},
            cause=cause,
        )
        self.action = action
        self.user_id = user_id
        self.is_verified = is_verified


class ServiceNotConfiguredError(BackOfficeError):
    """An external collaborator is missing its configuration."""

    status_code = 500

    def __init__(self, service: str, hint: str = ""):
        message = f"{service} is not configured"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message, context={"service": service})
        self.service = service


class InternalError(BackOfficeError):
    """Unexpected failure."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", **kwargs):
        super().__init__(message, **kwargs)


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "BackOfficeError",
    "ValidationError",
    "InvalidRecipientError",
    "DuplicateUserError",
    "InvalidCredentialError",
    "NotVerifiedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "RateLimitedError",
    "NotificationDeliveryError",
    "ApprovalNotDeliveredError",
    "ServiceNotConfiguredError",
    "InternalError",
]
