"""
KYC Document Storage.

============================================================
PURPOSE
============================================================
Stores uploaded identity documents and returns a stable URL
per file. The Cloudinary implementation does a signed upload
over aiohttp.

RULES:
- jpg, jpeg and png only
- 5 MB per file
- Files land in the configured folder

============================================================
"""

import asyncio
import hashlib
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

import aiohttp

from core.config import DocumentStorageConfig
from core.exceptions import InternalError, ServiceNotConfiguredError, ValidationError


logger = logging.getLogger(__name__)

_CONTENT_TYPES = {
    "jpg": ("image/jpeg", "image/jpg"),
    "jpeg": ("image/jpeg", "image/jpg"),
    "png": ("image/png",),
}


@dataclass(frozen=True)
class UploadedDocument:
    """A file received from the client."""

    field: str
    filename: str
    content_type: Optional[str]
    content: bytes

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename or "")[1].lstrip(".").lower()


@runtime_checkable
class DocumentStore(Protocol):
    """Object storage for KYC documents."""

    @property
    def configured(self) -> bool:
        ...

    def validate(self, document: UploadedDocument) -> None:
        """Raise ValidationError if the file is not acceptable."""
        ...

    async def upload(self, document: UploadedDocument) -> str:
        """Store the file and return its URL."""
        ...

    async def close(self) -> None:
        ...


def validate_document(document: UploadedDocument, config: DocumentStorageConfig) -> None:
    """
    Check format and size.

    Raises:
        ValidationError: empty, too large, or wrong format
    """
    if not document.content:
        raise ValidationError(f"{document.field} is empty", fields=[document.field])
    if len(document.content) > config.max_file_bytes:
        limit_mb = config.max_file_bytes // (1024 * 1024)
        raise ValidationError(f"{document.field} exceeds the {limit_mb} MB limit", fields=[document.field])

    extension = document.extension
    if extension not in config.allowed_formats:
        raise ValidationError(
            f"{document.field} must be one of: {', '.join(config.allowed_formats)}",
            fields=[document.field],
        )
    allowed_types = _CONTENT_TYPES.get(extension, ())
    if document.content_type and allowed_types and document.content_type not in allowed_types:
        raise ValidationError(f"{document.field} has an unexpected content type", fields=[document.field])


class CloudinaryDocumentStore:
    """Signed uploads to Cloudinary."""

    UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"

    def __init__(self, config: DocumentStorageConfig, timeout_seconds: float = 60.0):
        self._config = config
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

        if not config.configured:
            logger.warning("Document storage NOT configured - check CLOUDINARY_* settings")

    @property
    def configured(self) -> bool:
        return self._config.configured

    def validate(self, document: UploadedDocument) -> None:
        validate_document(document, self._config)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _signature(self, params: dict) -> str:
        payload = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{payload}{self._config.api_secret}".encode()).hexdigest()

    async def upload(self, document: UploadedDocument) -> str:
        """
        Upload one document.

        Raises:
            ServiceNotConfiguredError: credentials missing
            ValidationError: file rejected
            InternalError: storage answered with an error
        """
        if not self.configured:
            raise ServiceNotConfiguredError("File upload service", "Please contact support.")
        self.validate(document)

        params = {
            "folder": self._config.folder,
            "timestamp": str(int(time.time())),
        }
        form = aiohttp.FormData()
        for key, value in params.items():
            form.add_field(key, value)
        form.add_field("api_key", self._config.api_key)
        form.add_field("signature", self._signature(params))
        form.add_field(
            "file",
            document.content,
            filename=document.filename,
            content_type=document.content_type or "application/octet-stream",
        )

        url = self.UPLOAD_URL.format(cloud_name=self._config.cloud_name)
        try:
            session = await self._get_session()
            async with session.post(url, data=form) as response:
                if response.status >= 300:
                    body = await response.text()
                    logger.error(f"Document upload failed: {response.status} - {body[:200]}")
                    raise InternalError("Failed to upload documents")
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Document upload error for {document.field}: {e!r}")
            raise InternalError("Failed to upload documents", cause=e)

        if not isinstance(data, dict):
            data = {}
        secure_url = data.get("secure_url") or data.get("url")
        if not secure_url:
            raise InternalError("Document storage returned no URL")
        return secure_url

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
