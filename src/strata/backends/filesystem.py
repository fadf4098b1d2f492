# src/strata/backends/filesystem.py
"""Filesystem storage backend.

A reference's path maps to a file under base_path. References with no path
(opaque or authority-only) are mapped to the hash reference of their
canonical string, so every reference has a flat, filesystem-safe location.

Structure: base_path/<reference path>
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from strata.contracts.errors import InvalidReferenceError, NotFoundError
from strata.contracts.payload import is_stream, to_bytes
from strata.contracts.records import format_timestamp
from strata.contracts.reference import Reference
from strata.contracts.storage import BaseStorage
from strata.core.hashing import encode_reference

__all__ = ["FileEntry", "FilesystemStorage"]

_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True, slots=True)
class FileEntry:
    """One entry of a directory listing."""

    name: str
    size: int
    is_dir: bool
    modified_at: datetime

    def to_reference(self) -> Reference:
        path = "/" + self.name + ("/" if self.is_dir else "")
        return Reference(scheme="file", path=path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "size": self.size,
            "is_dir": self.is_dir,
            "modified_at": format_timestamp(self.modified_at),
        }


class FilesystemStorage(BaseStorage):
    """Files under a root directory.

    get of a directory returns its entries as FileEntry values; merge
    appends to the file (creating it if needed).
    """

    def __init__(self, base_path: Path) -> None:
        """Initialize filesystem storage.

        Args:
            base_path: Root directory; created if missing
        """
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, reference: Reference) -> Path:
        """Filesystem path for reference.

        Raises:
            InvalidReferenceError: If the resolved path escapes base_path
        """
        relative = reference.path
        if not relative:
            relative = str(encode_reference(reference))
        path = self.base_path / relative.lstrip("/")

        # Path containment: ".." segments and symlinks must not leave base_path
        try:
            resolved = path.resolve()
            base_resolved = self.base_path.resolve()
        except OSError as e:
            raise InvalidReferenceError(f"path resolution failed for {reference}") from e
        if resolved != base_resolved and not resolved.is_relative_to(base_resolved):
            raise InvalidReferenceError(f"path traversal detected: {reference} resolves outside {base_resolved}")
        return path

    def get(self, reference: Reference) -> bytes | list[FileEntry]:
        path = self.path_for(reference)
        if path.is_dir():
            entries = []
            for child in sorted(path.iterdir()):
                stat = child.stat()
                entries.append(
                    FileEntry(
                        name=child.name,
                        size=stat.st_size,
                        is_dir=child.is_dir(),
                        modified_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                    )
                )
            return entries
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(reference) from None

    def _write(self, reference: Reference, payload: object, mode: str) -> None:
        path = self.path_for(reference)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open(mode) as handle:
            if is_stream(payload):
                try:
                    while chunk := payload.read(_CHUNK_SIZE):  # type: ignore[attr-defined]
                        handle.write(chunk)
                finally:
                    close = getattr(payload, "close", None)
                    if callable(close):
                        close()
            else:
                handle.write(to_bytes(payload))

    def put(self, reference: Reference, payload: object) -> None:
        self._write(reference, payload, "wb")

    def merge(self, reference: Reference, payload: object) -> None:
        self._write(reference, payload, "ab")

    def delete(self, reference: Reference) -> None:
        path = self.path_for(reference)
        if path.resolve() == self.base_path.resolve():
            raise InvalidReferenceError(f"refusing to delete storage root via {reference}")
        if path.is_dir():
            shutil.rmtree(path)
            return
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(reference) from None

    def find(self, name: str) -> Reference:
        """Reference for an existing file or directory.

        Raises:
            NotFoundError: If nothing exists at name
        """
        reference = Reference.from_path(name)
        if not self.path_for(reference).exists():
            raise NotFoundError(reference)
        return reference
