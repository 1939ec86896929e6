"""
Core Module - Configuration.

============================================================
PURPOSE
============================================================
All runtime configuration for the back office, read from the
environment (a local .env file is loaded first).

GROUPS:
- DatabaseConfig: connection URI
- ServerConfig: port, environment, CORS origins
- RateLimitConfig: API request throttling
- AuthConfig: session token signing
- EmailConfig: primary API provider and SMTP fallback
- DocumentStorageConfig: object storage for KYC documents

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv


DEFAULT_FROM_ADDRESS = "Forex Flow <no-reply@forexflowtrade.com>"

# Development-only signing secret; refused in production
DEFAULT_TOKEN_SECRET = "change-me"

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "https://www.forexflowtrade.com",
]


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip whitespace and surrounding quotes left by .env editors."""
    if value is None:
        return None
    value = value.strip().strip("\"'").strip()
    return value or None


def _get(env: Mapping[str, str], key: str, default: Optional[str] = None) -> Optional[str]:
    value = _clean(env.get(key))
    return value if value is not None else default


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    value = _get(env, key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}")


# ============================================================
# CONFIG GROUPS
# ============================================================

@dataclass(frozen=True)
class DatabaseConfig:
    """Persistent store connection."""

    url: str = "sqlite:///./data/backoffice.sqlite3"
    """SQLAlchemy connection URI."""

    echo: bool = False
    """Log SQL statements."""


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server settings."""

    port: int = 8000
    environment: str = "development"
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@dataclass(frozen=True)
class RateLimitConfig:
    """
    API rate limiting.

    Applied per client address to every /api/ path.
    """

    window_seconds: int = 15 * 60
    """Length of one counting window."""

    max_requests: int = 200
    """Requests allowed per window."""


@dataclass(frozen=True)
class AuthConfig:
    """Session token signing."""

    token_secret: str = DEFAULT_TOKEN_SECRET
    token_expiry_seconds: int = 24 * 60 * 60
    algorithm: str = "HS256"
    cookie_name: str = "accessToken"


@dataclass(frozen=True)
class EmailConfig:
    """
    Transactional email providers.

    The API provider is used when an API key is present, SMTP
    when host credentials are present. Either may be missing.
    """

    resend_api_key: Optional[str] = None
    from_address: str = DEFAULT_FROM_ADDRESS
    reply_to: Optional[str] = None

    smtp_host: str = "smtpout.secureserver.net"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_timeout_seconds: float = 90.0

    @property
    def api_configured(self) -> bool:
        return bool(self.resend_api_key)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)


@dataclass(frozen=True)
class DocumentStorageConfig:
    """Object storage for uploaded KYC documents."""

    cloud_name: Optional[str] = None
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    folder: str = "user_documents"
    max_file_bytes: int = 5 * 1024 * 1024
    allowed_formats: List[str] = field(default_factory=lambda: ["jpg", "jpeg", "png"])

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)


@dataclass(frozen=True)
class AppSettings:
    """All configuration groups."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    documents: DocumentStorageConfig = field(default_factory=DocumentStorageConfig)
    log_level: str = "INFO"
    log_format: str = "text"


# ============================================================
# LOADING
# ============================================================

def validate_settings(settings: AppSettings) -> None:
    """
    Refuse settings that are unsafe to serve with.

    Raises:
        ValueError: production without a real token secret
    """
    if settings.server.is_production and settings.auth.token_secret in (None, "", DEFAULT_TOKEN_SECRET):
        raise ValueError("ACCESS_TOKEN_SECRET must be set in production")


def load_settings(env: Optional[Mapping[str, str]] = None) -> AppSettings:
    """
    Build settings from the environment.

    Args:
        env: Mapping to read instead of os.environ (tests)

    Returns:
        AppSettings
    """
    if env is None:
        load_dotenv()
        env = os.environ

    cors = _get(env, "CORS_ORIGIN")
    origins = list(DEFAULT_CORS_ORIGINS)
    if cors:
        for origin in cors.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)

    smtp_user = _get(env, "EMAIL_USER") or _get(env, "EMAIL_FROM")
    from_address = _get(env, "EMAIL_FROM") or _get(env, "EMAIL_USER") or DEFAULT_FROM_ADDRESS

    settings = AppSettings(
        database=DatabaseConfig(
            url=_get(env, "DATABASE_URL", DatabaseConfig.url),
            echo=_get(env, "DATABASE_ECHO", "false").lower() == "true",
        ),
        server=ServerConfig(
            port=_get_int(env, "PORT", 8000),
            environment=(_get(env, "APP_ENV") or _get(env, "NODE_ENV") or "development").lower(),
            cors_origins=origins,
        ),
        rate_limit=RateLimitConfig(
            window_seconds=_get_int(env, "RATE_LIMIT_WINDOW_SECONDS", RateLimitConfig.window_seconds),
            max_requests=_get_int(env, "RATE_LIMIT_MAX_REQUESTS", RateLimitConfig.max_requests),
        ),
        auth=AuthConfig(
            token_secret=_get(env, "ACCESS_TOKEN_SECRET", AuthConfig.token_secret),
            token_expiry_seconds=_get_int(env, "ACCESS_TOKEN_EXPIRY_SECONDS", AuthConfig.token_expiry_seconds),
        ),
        email=EmailConfig(
            resend_api_key=_get(env, "RESEND_API_KEY"),
            from_address=from_address,
            reply_to=_get(env, "EMAIL_REPLY_TO"),
            smtp_host=_get(env, "EMAIL_HOST", EmailConfig.smtp_host),
            smtp_port=_get_int(env, "EMAIL_PORT", EmailConfig.smtp_port),
            smtp_user=smtp_user,
            smtp_password=_get(env, "EMAIL_PASS"),
        ),
        documents=DocumentStorageConfig(
            cloud_name=_get(env, "CLOUDINARY_CLOUD_NAME"),
            api_key=_get(env, "CLOUDINARY_API_KEY"),
            api_secret=_get(env, "CLOUDINARY_API_SECRET"),
        ),
        log_level=_get(env, "LOG_LEVEL", "INFO"),
        log_format=_get(env, "LOG_FORMAT", "text"),
    )
    validate_settings(settings)
    return settings


__all__ = [
    "DEFAULT_FROM_ADDRESS",
    "DEFAULT_TOKEN_SECRET",
    "DatabaseConfig",
    "ServerConfig",
    "RateLimitConfig",
    "AuthConfig",
    "EmailConfig",
    "DocumentStorageConfig",
    "AppSettings",
    "validate_settings",
    "load_settings",
]
