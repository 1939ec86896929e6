"""
Core Module - Logging.

Installs a single stdout handler on the root logger. Modules log
through `logging.getLogger(__name__)`.
"""

import json
import logging
import sys


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
) -> logging.Logger:
    """
    Set up process logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured application logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # Access logs are noisy at INFO and duplicate request logging
    logging.getLogger("uvicorn.access").setLevel(max(log_level, logging.WARNING))

    return logging.getLogger("backoffice")


def mask_email(address: str) -> str:
    """
    Mask an email address for logs.

    "jane.doe@example.com" -> "ja***@example.com"
    """
    local, sep, domain = address.partition("@")
    if not sep:
        return "***"
    return f"{local[:2]}***@{domain}"


__all__ = ["setup_logging", "mask_email"]
