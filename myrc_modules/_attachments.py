"""
File Attachments (``myrc_modules._attachments``).

Responsibility
--------------
Shared persistence columns, upload validation and DTOs for the files
attached to procurement quotes, procurement events and spending invoices.

Architecture position
---------------------
**Modules layer** -- utility.  ``AttachmentPolicy`` is built from
configuration by ``myrc_config.bridges.build_attachment_policy``.

Invariants enforced
-------------------
* Uploads are non-empty, at most ``max_size_bytes`` (50 MB by default) and
  of an allowed content type (PDF, images, Word, Excel, text, CSV).
* File content is only returned by the explicit download operation; list
  and metadata views never carry it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Self
from uuid import UUID

from sqlalchemy import BigInteger, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from myrc_kernel.exceptions import AttachmentError
from myrc_kernel.logging_config import get_logger

logger = get_logger("modules.attachments")

MAX_FILE_SIZE = 50 * 1024 * 1024

ALLOWED_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/bmp",
        "image/tiff",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
        "text/csv",
    }
)


@dataclass(frozen=True)
class AttachmentPolicy:
    """Upload limits.

    Contract: ``max_size_bytes`` is positive and at least one content type
    is allowed.  Validated at construction.
    """

    max_size_bytes: int = MAX_FILE_SIZE
    allowed_content_types: frozenset[str] = ALLOWED_CONTENT_TYPES

    def __post_init__(self):
        if self.max_size_bytes <= 0:
            raise ValueError("max_size_bytes must be positive")
        if not self.allowed_content_types:
            raise ValueError("allowed_content_types cannot be empty")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @property
    def max_size_label(self) -> str:
        return f"{self.max_size_bytes // (1024 * 1024)}MB"

    def validate(self, file_name: str | None, content_type: str | None, content: bytes | None) -> None:
        """
        Raises:
            AttachmentError: empty file, oversize file, or disallowed type.
        """
        if not content:
            raise AttachmentError("File is empty", file_name)
        if len(content) > self.max_size_bytes:
            raise AttachmentError(
                f"File size exceeds maximum allowed size of {self.max_size_label}", file_name
            )
        if content_type is None or content_type not in self.allowed_content_types:
            logger.warning(
                "attachment_rejected",
                extra={"file_name": file_name, "content_type": content_type},
            )
            raise AttachmentError(
                "File type not allowed. Allowed types: PDF, images, Word, Excel, text, CSV",
                file_name,
            )


class AttachmentColumns:
    """Declarative mixin with the columns every attachment table carries."""

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False, deferred=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(default=True, nullable=False)

    def file_info(self) -> FileInfo:
        return FileInfo(
            id=self.id,
            file_name=self.file_name,
            content_type=self.content_type,
            file_size=self.file_size,
            description=self.description,
            created_at=self.created_at,
            created_by=self.created_by,
        )

    def file_content(self) -> FileContent:
        return FileContent(
            file_name=self.file_name,
            content_type=self.content_type,
            content=self.content,
        )


@dataclass(frozen=True)
class FileInfo:
    """Attachment metadata (no content)."""

    id: UUID
    file_name: str
    content_type: str
    file_size: int
    description: str | None
    created_at: datetime | None
    created_by: str | None


@dataclass(frozen=True)
class FileContent:
    file_name: str
    content_type: str
    content: bytes


@dataclass(frozen=True)
class Upload:
    """A file as received from a client."""

    file_name: str
    content_type: str | None
    content: bytes
    description: str | None = None


def apply_upload(row: AttachmentColumns, upload: Upload, policy: AttachmentPolicy) -> None:
    """Validate ``upload`` and copy it onto an attachment row (new or replaced)."""
    policy.validate(upload.file_name, upload.content_type, upload.content)
    row.file_name = upload.file_name
    row.content_type = upload.content_type
    row.file_size = len(upload.content)
    row.content = upload.content
    if upload.description is not None:
        row.description = upload.description.strip() or None
