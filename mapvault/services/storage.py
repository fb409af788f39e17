#  Map Vault - Object Store
#
#  Filesystem-backed buckets standing in for hosted object storage.
#  Objects live at <root>/<bucket>/<key>; keys are relative POSIX paths.
#  Blocking file IO runs in a worker thread.
#
#  Depends on: mapvault/config.py, mapvault/exceptions.py
#  Used by:    container.py, services/artifacts.py

import asyncio
import logging
from pathlib import Path

from mapvault.exceptions import StorageError
from mapvault.models.enums import Bucket

logger = logging.getLogger("mapvault.storage")


def validate_key(key: str) -> str:
    """Reject keys that are absolute or climb out of their bucket."""
    if not key or key.startswith("/") or "\\" in key or "\x00" in key:
        raise ValueError(f"Invalid object key: {key!r}")
    # Every segment must be a real name; "a/./b" and "a//b" alias "a/b"
    if any(p in ("", ".", "..") for p in key.split("/")):
        raise ValueError(f"Invalid object key: {key!r}")
    return key


class ObjectStore:
    """Bucketed blob storage on the local filesystem."""

    def __init__(self, root: str | Path):
        self._root = Path(root)

    def _path(self, bucket: Bucket | str, key: str) -> Path:
        name = bucket.value if isinstance(bucket, Bucket) else bucket
        return self._root / name / validate_key(key)

    async def put(self, bucket: Bucket | str, key: str, data: bytes, *, upsert: bool = False) -> str:
        """Write an object. Raises StorageError if it exists and upsert is False."""
        path = self._path(bucket, key)

        def _write():
            if path.exists() and not upsert:
                raise StorageError(f"Object already exists: {key}")
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".partial")
            tmp.write_bytes(data)
            tmp.replace(path)

        try:
            await asyncio.to_thread(_write)
        except StorageError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to write {key}") from e
        logger.info("Stored %s/%s (%d bytes)", getattr(bucket, "value", bucket), key, len(data))
        return key

    async def get(self, bucket: Bucket | str, key: str) -> bytes:
        path = self._path(bucket, key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageError(f"Object not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}") from e

    async def exists(self, bucket: Bucket | str, key: str) -> bool:
        return await asyncio.to_thread(self._path(bucket, key).exists)

    async def delete(self, bucket: Bucket | str, key: str) -> bool:
        """Remove an object. Returns False if it was already gone."""
        path = self._path(bucket, key)

        def _unlink() -> bool:
            try:
                path.unlink()
                return True
            except FileNotFoundError:
                return False

        try:
            return await asyncio.to_thread(_unlink)
        except OSError as e:
            raise StorageError(f"Failed to delete {key}") from e

    async def list_keys(self, bucket: Bucket | str, prefix: str = "") -> list[str]:
        """All keys in a bucket (optionally under prefix), sorted."""
        name = bucket.value if isinstance(bucket, Bucket) else bucket
        base = self._root / name

        def _walk() -> list[str]:
            if not base.exists():
                return []
            keys = [
                p.relative_to(base).as_posix()
                for p in base.rglob("*")
                if p.is_file() and not p.name.endswith(".partial")
            ]
            return sorted(k for k in keys if k.startswith(prefix))

        return await asyncio.to_thread(_walk)
