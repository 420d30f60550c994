"""
Attachment Store - on-disk storage for binary record attachments.

Blobs live outside the database, so they cannot join a record transaction.
Every save produces a fresh, unique reference token; the TransactionCoordinator
decides when a token becomes garbage and asks the store to delete it.

Structure: base_dir/uploads/<uuid hex>_<sanitised name>
Token:     "uploads/<uuid hex>_<sanitised name>"
"""

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from backend.app.core.config import get_settings
from backend.app.core.errors import ValidationFailed

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_MAX_NAME_LENGTH = 100


@dataclass(frozen=True)
class AttachmentUpload:
    """Raw bytes submitted for an attachment-capable field."""
    content: bytes
    filename: str


def sanitise_filename(name: str) -> str:
    """Reduce a client-supplied filename to a safe basename."""
    base = Path(name.replace("\\", "/")).name
    base = _UNSAFE_CHARS.sub("_", base).strip("._")
    return base[-_MAX_NAME_LENGTH:] or "attachment"


class FilesystemAttachmentStore:
    """Filesystem-backed attachment store."""

    def __init__(self, base_dir: Path, prefix: str = "uploads", max_bytes: int | None = None):
        self.base_dir = Path(base_dir)
        self.prefix = prefix
        self.max_bytes = max_bytes
        (self.base_dir / self.prefix).mkdir(parents=True, exist_ok=True)

    def path_for(self, token: str) -> Path:
        """
        Resolve a token to a path under base_dir.

        Raises:
            ValueError: If the token is malformed or escapes base_dir
        """
        if not token or not token.startswith(f"{self.prefix}/"):
            raise ValueError(f"Invalid attachment token: {token!r}")

        path = self.base_dir / token
        resolved = path.resolve()
        if not resolved.is_relative_to((self.base_dir / self.prefix).resolve()):
            raise ValueError(f"Invalid attachment token: path traversal in {token!r}")
        return resolved

    async def save(self, raw: bytes, suggested_name: str) -> str:
        """Store raw bytes and return a new reference token."""
        if self.max_bytes is not None and len(raw) > self.max_bytes:
            raise ValidationFailed(
                f"Attachment {suggested_name!r} exceeds the {self.max_bytes} byte limit."
            )

        token = f"{self.prefix}/{uuid.uuid4().hex}_{sanitise_filename(suggested_name)}"
        path = self.path_for(token)
        await asyncio.to_thread(path.write_bytes, raw)
        logger.info(f"Saved attachment {token} ({len(raw)} bytes)")
        return token

    async def delete(self, token: str) -> bool:
        """
        Delete a stored blob.

        Idempotent: a missing blob is logged and reported as False.
        """
        path = self.path_for(token)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            logger.debug(f"Attachment {token} already absent")
            return False
        logger.info(f"Deleted attachment {token}")
        return True

    async def exists(self, token: str) -> bool:
        try:
            path = self.path_for(token)
        except ValueError:
            return False
        return await asyncio.to_thread(path.is_file)

    def healthy(self) -> bool:
        """True when the upload directory exists and is writable."""
        directory = self.base_dir / self.prefix
        probe = directory / f".probe-{uuid.uuid4().hex}"
        try:
            probe.write_bytes(b"")
            probe.unlink()
        except OSError:
            return False
        return True


@lru_cache
def get_attachment_store() -> FilesystemAttachmentStore:
    """Get the process-wide attachment store."""
    settings = get_settings()
    return FilesystemAttachmentStore(
        Path(settings.upload_dir),
        max_bytes=settings.max_upload_bytes,
    )
