"""
Tests for environment configuration.
"""

import pytest

from core.config import (
    DEFAULT_CORS_ORIGINS,
    DEFAULT_FROM_ADDRESS,
    DEFAULT_TOKEN_SECRET,
    AppSettings,
    ServerConfig,
    load_settings,
    validate_settings,
)


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings(env={})

        assert settings.server.environment == "development"
        assert settings.server.cors_origins == DEFAULT_CORS_ORIGINS
        assert settings.email.from_address == DEFAULT_FROM_ADDRESS
        assert settings.email.api_configured is False
        assert settings.email.smtp_configured is False
        assert settings.documents.configured is False
        assert settings.rate_limit.max_requests == 200

    def test_quotes_are_stripped(self):
        settings = load_settings(env={"RESEND_API_KEY": ' "re_123" ', "EMAIL_PASS": "'secret'"})

        assert settings.email.resend_api_key == "re_123"
        assert settings.email.smtp_password == "secret"

    def test_sender_falls_back_to_smtp_user(self):
        settings = load_settings(env={"EMAIL_USER": "desk@example.com", "EMAIL_PASS": "pw"})

        assert settings.email.from_address == "desk@example.com"
        assert settings.email.smtp_configured is True

    def test_cors_origins_are_merged(self):
        settings = load_settings(env={"CORS_ORIGIN": "https://admin.example.com/, http://localhost:3000"})

        assert settings.server.cors_origins == DEFAULT_CORS_ORIGINS + ["https://admin.example.com"]

    def test_production_flag(self):
        settings = load_settings(env={"NODE_ENV": "Production", "ACCESS_TOKEN_SECRET": "s3cr3t-value"})
        assert settings.server.is_production is True
        assert settings.auth.token_secret == "s3cr3t-value"

    @pytest.mark.parametrize("secret", [None, "change-me", " 'change-me' "])
    def test_production_requires_token_secret(self, secret):
        env = {"NODE_ENV": "production"}
        if secret is not None:
            env["ACCESS_TOKEN_SECRET"] = secret

        with pytest.raises(ValueError, match="ACCESS_TOKEN_SECRET"):
            load_settings(env=env)

    def test_development_keeps_fallback_secret(self):
        assert load_settings(env={}).auth.token_secret == DEFAULT_TOKEN_SECRET

    def test_validate_explicit_settings(self):
        settings = AppSettings(server=ServerConfig(environment="production"))
        with pytest.raises(ValueError):
            validate_settings(settings)

    def test_bad_integer(self):
        with pytest.raises(ValueError):
            load_settings(env={"PORT": "eighty"})
