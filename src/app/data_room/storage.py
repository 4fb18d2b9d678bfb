"""Filesystem-backed object storage for the documents bucket.

Objects live under {root}/{bucket}/{path}. Blocking file I/O is wrapped in
asyncio.to_thread(). Downloads go through short-lived signed URLs whose
JWT names the bucket, object path, and expiry.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog

from src.app.core.security import create_signed_path_token

logger = structlog.get_logger(__name__)


class StorageError(RuntimeError):
    """Raised when a storage operation fails."""


class ObjectNotFoundError(StorageError):
    pass


class LocalStorageBackend:
    """Bucketed object store on the local filesystem.

    Args:
        root: Directory holding one subdirectory per bucket.
        public_base_url: Base URL of this API, used to build signed URLs.
    """

    def __init__(self, root: str, public_base_url: str) -> None:
        self._root = Path(root).resolve()
        self._public_base_url = public_base_url.rstrip("/")

    def _resolve(self, bucket: str, path: str) -> Path:
        bucket_dir = (self._root / bucket).resolve()
        target = (bucket_dir / path).resolve()
        if bucket_dir not in target.parents:
            raise StorageError(f"Invalid object path: {path}")
        return target

    async def upload(self, bucket: str, path: str, content: bytes) -> str:
        """Write an object, refusing to overwrite an existing one."""
        target = self._resolve(bucket, path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "xb") as fh:
                fh.write(content)

        try:
            await asyncio.to_thread(_write)
        except FileExistsError as exc:
            raise StorageError(f"Object already exists: {path}") from exc
        logger.info("storage.uploaded", bucket=bucket, path=path, size=len(content))
        return path

    async def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as exc:
            raise ObjectNotFoundError(f"Object not found: {path}") from exc

    async def remove(self, bucket: str, path: str) -> None:
        """Delete an object; a missing object is not an error."""
        target = self._resolve(bucket, path)
        try:
            await asyncio.to_thread(os.remove, target)
        except FileNotFoundError:
            logger.warning("storage.remove_missing", bucket=bucket, path=path)
            return
        logger.info("storage.removed", bucket=bucket, path=path)

    def object_path(self, bucket: str, path: str) -> Path:
        """Filesystem path of an object (for streaming responses)."""
        return self._resolve(bucket, path)

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        token = create_signed_path_token(bucket, path, expires_in)
        return f"{self._public_base_url}/api/v1/storage/{bucket}/{path}?token={token}"
