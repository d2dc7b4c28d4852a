"""
Staff document storage port and file-path rules.

Contract:
    DocumentStorage.save() writes bytes under a relative storage path.
    DocumentStorage.delete() removes them; a missing file is not an error.

Every storage path has the shape
``{root}/{business_id}/{staff_id}_{document_type}_{timestamp_ms}.{ext}`` so
that ownership can be checked from the path alone.

Architecture: backoffice_modules/staff.  File I/O only, no DB imports.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Protocol, runtime_checkable
from uuid import UUID

from backoffice_kernel.exceptions import DocumentStorageError, FilePathOwnershipError

DEFAULT_STORAGE_ROOT = "staff-documents"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_PATH_SEPARATORS = re.compile(r"[/\\]")
_FORBIDDEN_CHARS = re.compile(r'[<>:"|?*]')
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


@runtime_checkable
class DocumentStorage(Protocol):
    """Protocol for the file store behind staff documents."""

    def save(self, file_path: str, content: bytes) -> None:
        ...

    def delete(self, file_path: str) -> None:
        ...


def sanitize_filename(filename: str) -> str:
    """Strip path separators, Windows-forbidden characters and ``..``."""
    cleaned = _PATH_SEPARATORS.sub("", filename)
    cleaned = _FORBIDDEN_CHARS.sub("", cleaned)
    cleaned = cleaned.replace("..", "")
    return cleaned.strip()


def _extension(filename: str) -> str:
    ext = _NON_ALNUM.sub("", filename.rsplit(".", 1)[-1])
    return ext or "bin"


def generate_secure_file_path(
    business_id: UUID | str,
    staff_id: UUID | str,
    document_type: str,
    original_filename: str,
    now: datetime,
    root: str = DEFAULT_STORAGE_ROOT,
) -> str:
    """
    Build the storage path for an upload.

    Only the extension of the (sanitized) original filename survives; the
    rest of the name is replaced by staff id, type and a millisecond
    timestamp taken from ``now``.
    """
    timestamp = (now - _EPOCH) // timedelta(milliseconds=1)
    ext = _extension(sanitize_filename(original_filename))
    return f"{root}/{business_id}/{staff_id}_{document_type}_{timestamp}.{ext}"


def validate_file_path_ownership(
    file_path: str,
    business_id: UUID | str,
    root: str = DEFAULT_STORAGE_ROOT,
) -> bool:
    parts = file_path.split("/")
    if len(parts) < 3:
        return False
    if any(part in ("", ".", "..") for part in parts):
        return False
    return parts[0] == root and parts[1] == str(business_id)


def require_file_path_ownership(
    file_path: str,
    business_id: UUID | str,
    root: str = DEFAULT_STORAGE_ROOT,
) -> None:
    if not validate_file_path_ownership(file_path, business_id, root):
        raise FilePathOwnershipError(file_path, str(business_id))


class LocalDocumentStorage:
    """Stores document bytes on the local filesystem below ``base_dir``."""

    def __init__(self, base_dir: Path | str):
        self.base_dir = Path(base_dir).resolve()

    def _resolve(self, file_path: str) -> Path:
        target = (self.base_dir / file_path).resolve()
        if self.base_dir not in target.parents:
            raise DocumentStorageError(file_path, "path escapes the storage directory")
        return target

    def save(self, file_path: str, content: bytes) -> None:
        target = self._resolve(file_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("xb") as f:
                f.write(content)
        except OSError as exc:
            raise DocumentStorageError(file_path, str(exc)) from exc

    def delete(self, file_path: str) -> None:
        target = self._resolve(file_path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise DocumentStorageError(file_path, str(exc)) from exc

    def exists(self, file_path: str) -> bool:
        return self._resolve(file_path).is_file()
