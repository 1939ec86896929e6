#!/usr/bin/env python3
"""
Brokerage Back Office - Main Application Entry Point.

============================================================
USAGE
============================================================
Direct execution:
    python app.py
    python app.py --port 9000 --reload

Environment-based configuration (.env is read first):
    DATABASE_URL, PORT, APP_ENV, ACCESS_TOKEN_SECRET,
    RESEND_API_KEY, EMAIL_USER, EMAIL_PASS, CLOUDINARY_*

============================================================
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI

from api.main import create_app
from core.config import AppSettings, load_settings, validate_settings
from core.logging_setup import setup_logging
from storage.database import Database


logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(url: str) -> None:
    prefix = "sqlite:///"
    if url.startswith(prefix) and url != "sqlite:///:memory:":
        Path(url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)


def build_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Wire configuration, database and collaborators into the app."""
    settings = settings or load_settings()
    validate_settings(settings)
    setup_logging(settings.log_level, settings.log_format)

    _ensure_sqlite_directory(settings.database.url)
    database = Database(settings.database)
    database.create_all()

    return create_app(settings, database)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Brokerage back office API server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="Port (defaults to PORT)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    return parser


def main() -> None:
    args = create_parser().parse_args()
    settings = load_settings()
    port = args.port or settings.server.port

    if args.reload:
        uvicorn.run("app:build_app", factory=True, host=args.host, port=port, reload=True)
    else:
        uvicorn.run(build_app(settings), host=args.host, port=port)


if __name__ == "__main__":
    main()
