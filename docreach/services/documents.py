"""
Document store for verification artifacts.
Format is decided by magic-byte signature (PDF, JPEG, PNG, WEBP), never by the client's
content type or file name. Stored files get an opaque reference: the generated file name.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from docreach.config import settings
from docreach.core.errors import InvalidDocumentError, StorageFailureError

logger = logging.getLogger(__name__)

# (content type, extension) by signature
PDF = ("application/pdf", ".pdf")
JPEG = ("image/jpeg", ".jpg")
PNG = ("image/png", ".png")
WEBP = ("image/webp", ".webp")


@dataclass(frozen=True)
class StoredDocument:
    ref: str
    content_type: str
    size_bytes: int


def sniff_format(data: bytes) -> Optional[tuple]:
    """Return (content_type, extension) for a supported signature, else None."""
    if data[:4] == b"%PDF":
        return PDF
    if data[:2] == b"\xff\xd8":
        return JPEG
    if data[:4] == b"\x89PNG":
        return PNG
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return WEBP
    return None


class LocalDocumentStore:
    """Filesystem-backed store rooted at base_dir."""

    def __init__(self, base_dir: Optional[str] = None, max_bytes: Optional[int] = None):
        self.base_dir = Path(base_dir or settings.upload_dir)
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_document_bytes

    def validate(self, data: bytes) -> tuple:
        if not data:
            raise InvalidDocumentError("Document is empty", "INVALID_FORMAT")
        if len(data) > self.max_bytes:
            raise InvalidDocumentError(
                f"Document exceeds maximum size of {self.max_bytes} bytes",
                "TOO_LARGE",
                {"size_bytes": len(data), "max_bytes": self.max_bytes},
            )
        fmt = sniff_format(data)
        if fmt is None:
            raise InvalidDocumentError(
                "Unsupported document format; expected PDF, JPEG, PNG or WEBP",
                "INVALID_FORMAT",
            )
        return fmt

    def store(self, data: bytes, owner_id: str, kind: str) -> StoredDocument:
        content_type, extension = self.validate(data)
        timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        ref = f"{owner_id}_{kind}_{timestamp}_{secrets.token_hex(16)}{extension}"
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            (self.base_dir / ref).write_bytes(data)
        except OSError as e:
            logger.exception("Failed to write document for %s (%s)", owner_id, kind)
            raise StorageFailureError(str(e)) from e
        logger.info("Stored %s document for %s as %s (%d bytes)", kind, owner_id, ref, len(data))
        return StoredDocument(ref=ref, content_type=content_type, size_bytes=len(data))

    def read(self, ref: str) -> bytes:
        path = self.base_dir / Path(ref).name
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageFailureError(str(e)) from e


def get_document_store() -> LocalDocumentStore:
    return LocalDocumentStore()
