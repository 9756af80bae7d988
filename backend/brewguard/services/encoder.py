"""File validation and data-URI encoding for user-selected images."""
from __future__ import annotations

import asyncio
import base64
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Union

from ..events import EventSink
from ..models.session import EncodedImage, ErrorKind

ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png"})
MAX_FILE_SIZE = 10 * 1024 * 1024

CONTEXT = "upload"

Content = Union[bytes, os.PathLike, BinaryIO]


class ValidationError(Exception):
    """Raised when a candidate file cannot be submitted."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnsupportedType(ValidationError):
    kind = ErrorKind.UNSUPPORTED_TYPE


class TooLarge(ValidationError):
    kind = ErrorKind.TOO_LARGE


class ReadError(ValidationError):
    kind = ErrorKind.READ_ERROR


@dataclass(frozen=True)
class UploadCandidate:
    file_name: str
    size_bytes: int
    mime_type: str
    content: Content

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike]) -> "UploadCandidate":
        p = Path(path)
        mime_type, _ = mimetypes.guess_type(p.name)
        return cls(
            file_name=p.name,
            size_bytes=p.stat().st_size,
            mime_type=mime_type or "application/octet-stream",
            content=p,
        )

    @classmethod
    def from_bytes(cls, file_name: str, data: bytes, mime_type: str) -> "UploadCandidate":
        return cls(file_name=file_name, size_bytes=len(data), mime_type=mime_type, content=data)


def _read_content(content: Content) -> bytes:
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    if isinstance(content, os.PathLike):
        return Path(content).read_bytes()
    return content.read()


class ValidatorEncoder:
    """Checks type and size, then reads the file into a base64 data URI."""

    def __init__(self, events: EventSink) -> None:
        self._events = events

    def validate(self, candidate: UploadCandidate) -> None:
        self._events.info(
            "File selected",
            context=CONTEXT,
            data={
                "name": candidate.file_name,
                "type": candidate.mime_type,
                "size": candidate.size_bytes,
            },
        )
        if candidate.mime_type not in ALLOWED_MIME_TYPES:
            self._events.warn(
                "Invalid file type",
                context=CONTEXT,
                data={"type": candidate.mime_type},
            )
            raise UnsupportedType("Please upload a JPG or PNG image")
        if candidate.size_bytes > MAX_FILE_SIZE:
            self._events.warn(
                "File too large",
                context=CONTEXT,
                data={"size": candidate.size_bytes, "limit": MAX_FILE_SIZE},
            )
            raise TooLarge("File size exceeds 10MB limit")

    async def encode(self, candidate: UploadCandidate) -> EncodedImage:
        try:
            if isinstance(candidate.content, (bytes, bytearray)):
                raw = bytes(candidate.content)
            else:
                raw = await asyncio.to_thread(_read_content, candidate.content)
        except (OSError, ValueError) as exc:
            self._events.error("Failed to read file", exc, context=CONTEXT, data={"name": candidate.file_name})
            raise ReadError(f"Could not read {candidate.file_name}: {exc}") from exc

        encoded = base64.b64encode(raw).decode("ascii")
        data_uri = f"data:{candidate.mime_type};base64,{encoded}"
        self._events.info(
            "File read successfully",
            context=CONTEXT,
            data={"name": candidate.file_name, "bytes": len(raw)},
        )
        return EncodedImage(data_uri=data_uri)

    async def validate_and_encode(self, candidate: UploadCandidate) -> EncodedImage:
        self.validate(candidate)
        return await self.encode(candidate)
