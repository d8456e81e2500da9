"""
Local object store -- a directory-backed "bucket" for raw dataset files.

Object paths are relative, slash-separated keys such as
``<dataset_id>/sales.csv``.  Keys that would resolve outside the bucket
directory are rejected.
"""
from __future__ import annotations

from pathlib import Path

from datachat.core.config import get_settings
from datachat.core.logging import get_logger

logger = get_logger(__name__)


class StorageError(Exception):
    """Raised when an object cannot be stored, found, or read."""


class LocalObjectStore:
    def __init__(self, root: str | Path, bucket: str = "datasets"):
        self.bucket = bucket
        self.base = (Path(root) / bucket).resolve()

    def _resolve(self, path: str) -> Path:
        if not path or path.startswith(("/", "\\")):
            raise StorageError(f"Invalid object path '{path}'")
        target = (self.base / path).resolve()
        if self.base not in target.parents:
            raise StorageError(f"Object path '{path}' escapes bucket '{self.bucket}'")
        return target

    def upload(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to store '{path}': {exc}") from exc
        logger.info("Stored object %s/%s (%d bytes)", self.bucket, path, len(data))
        return path

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Object '{path}' not found in bucket '{self.bucket}'")
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read '{path}': {exc}") from exc

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def delete(self, path: str) -> bool:
        """Remove an object; returns False if it was not there."""
        target = self._resolve(path)
        if not target.is_file():
            return False
        target.unlink()
        parent = target.parent
        if parent != self.base and not any(parent.iterdir()):
            parent.rmdir()
        logger.info("Deleted object %s/%s", self.bucket, path)
        return True


_store: LocalObjectStore | None = None


def get_object_store() -> LocalObjectStore:
    """Return the shared object store (lazy-created from settings)."""
    global _store
    if _store is None:
        settings = get_settings()
        _store = LocalObjectStore(settings.storage_dir, settings.storage_bucket)
    return _store
