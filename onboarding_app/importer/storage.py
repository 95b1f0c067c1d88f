"""
Durable object storage for uploaded rosters and error reports.

Objects are addressed by ``(bucket, key)`` and stored as files under
``IMPORTER_STORAGE_ROOT/<bucket>/<key>``. Keys may contain ``/`` separators
but never escape their bucket.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from werkzeug.security import safe_join
from werkzeug.utils import secure_filename

DEFAULT_STORAGE_SUBDIR = "import_storage"


class StorageError(Exception):
    """Raised when an object cannot be read from or written to storage."""

    def __init__(self, message: str, *, bucket: str | None = None, key: str | None = None) -> None:
        super().__init__(message)
        self.bucket = bucket
        self.key = key


class ObjectNotFound(StorageError):
    """Raised when the requested object does not exist."""


class InvalidObjectKey(StorageError):
    """Raised when a bucket or key would resolve outside the storage root."""


def resolve_storage_root(app) -> Path:
    """
    Determine and create (if necessary) the storage root directory.

    Relative ``IMPORTER_STORAGE_ROOT`` values are taken relative to the
    instance path.
    """

    configured = app.config.get("IMPORTER_STORAGE_ROOT")
    if not configured:
        root = Path(app.instance_path) / DEFAULT_STORAGE_SUBDIR
    else:
        root = Path(configured)
        if not root.is_absolute():
            root = Path(app.instance_path) / root
    root.mkdir(parents=True, exist_ok=True)
    return root


class ObjectStorage:
    """Filesystem-backed bucket/key store."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def _bucket_dir(self, bucket: str) -> Path:
        if not bucket or secure_filename(bucket) != bucket:
            raise InvalidObjectKey(f"Invalid bucket name {bucket!r}.", bucket=bucket)
        return self.root / bucket

    def path_for(self, bucket: str, key: str) -> Path:
        bucket_dir = self._bucket_dir(bucket)
        joined = safe_join(str(bucket_dir), key) if key else None
        if joined is None or Path(joined) == bucket_dir:
            raise InvalidObjectKey(f"Invalid object key {key!r}.", bucket=bucket, key=key)
        return Path(joined)

    def exists(self, bucket: str, key: str) -> bool:
        return self.path_for(bucket, key).is_file()

    def get_bytes(self, bucket: str, key: str) -> bytes:
        path = self.path_for(bucket, key)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise ObjectNotFound(f"Object {bucket}/{key} does not exist.", bucket=bucket, key=key) from exc
        except OSError as exc:
            raise StorageError(f"Unable to read {bucket}/{key}: {exc}", bucket=bucket, key=key) from exc

    def put_bytes(self, bucket: str, key: str, body: bytes) -> Path:
        """Write ``body`` atomically; an existing object is replaced."""

        path = self.path_for(bucket, key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(body)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise StorageError(f"Unable to write {bucket}/{key}: {exc}", bucket=bucket, key=key) from exc
        return path

    def put_text(self, bucket: str, key: str, text: str) -> Path:
        return self.put_bytes(bucket, key, text.encode("utf-8"))


__all__ = [
    "DEFAULT_STORAGE_SUBDIR",
    "InvalidObjectKey",
    "ObjectNotFound",
    "ObjectStorage",
    "StorageError",
    "resolve_storage_root",
]
