from __future__ import annotations

import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path

from investment_portal.core.config import settings
from investment_portal.shared.utils import sha256_hex


@dataclass(frozen=True)
class StoredFile:
    file_name: str
    file_path: str
    sha256: str
    size_bytes: int
    mime_type: str


def _base_dir() -> Path:
    base = Path(settings.upload_dir).resolve()
    base.mkdir(parents=True, exist_ok=True)
    return base


def guess_mime_type(filename: str, declared: str | None = None) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def save_bytes(*, data: bytes, original_name: str, content_type: str | None = None) -> StoredFile:
    """Write an upload under a fresh uuid name; the original name is kept only in the DB row."""
    suffix = Path(original_name).suffix.lower()
    file_name = f"{uuid.uuid4().hex}{suffix}"
    path = _base_dir() / file_name
    path.write_bytes(data)
    return StoredFile(
        file_name=file_name,
        file_path=str(path),
        sha256=sha256_hex(data),
        size_bytes=len(data),
        mime_type=guess_mime_type(original_name, content_type),
    )


def read_bytes(file_path: str) -> bytes:
    path = Path(file_path)
    if not path.is_file():
        raise FileNotFoundError(file_path)
    return path.read_bytes()


def delete_file(file_path: str) -> bool:
    path = Path(file_path)
    if not path.is_file():
        return False
    path.unlink()
    return True
