"""Multipart upload and file download helpers shared by attachment routes."""

from __future__ import annotations

from urllib.parse import quote

from fastapi import UploadFile
from fastapi.responses import Response

from myrc_modules._attachments import FileContent, Upload


def read_upload(file: UploadFile, description: str | None) -> Upload:
    return Upload(
        file_name=file.filename or "",
        content_type=file.content_type,
        content=file.file.read(),
        description=description,
    )


def file_response(content: FileContent, inline: bool = False) -> Response:
    disposition = "inline" if inline else "attachment"
    return Response(
        content=content.content,
        media_type=content.content_type,
        headers={
            "Content-Disposition": f"{disposition}; filename*=UTF-8''{quote(content.file_name)}"
        },
    )
