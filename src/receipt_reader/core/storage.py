from __future__ import annotations

import os
import re
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from receipt_reader.core.config import settings
from receipt_reader.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredObject:
    key: str
    byte_size: int


class ReceiptStore:
    def put(self, *, key: str, body: bytes) -> StoredObject:  # pragma: no cover
        raise NotImplementedError

    def get(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError


class LocalReceiptStore(ReceiptStore):
    def __init__(self, root: Path):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    def put(self, *, key: str, body: bytes) -> StoredObject:
        start = time.monotonic()
        path = self._root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except Exception:
            log_exception(
                logger,
                "storage.put.failure",
                backend="local",
                storage_key=key,
                byte_size=len(body),
            )
            raise
        log_event(
            logger,
            "storage.put.success",
            backend="local",
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        path = self._root / key
        if not path.exists():
            log_event(logger, "storage.get.failure", backend="local", storage_key=key)
            raise StorageError(f"Object not found: {key}")
        return path.read_bytes()


def receipt_key(filename: str, *, prefix: str = "receipts") -> str:
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", Path(filename).name).strip("._") or "receipt"
    day = datetime.now(UTC).strftime("%Y/%m/%d")
    return f"{prefix}/{day}/{uuid.uuid4().hex}_{safe[:120]}"


_storage: ReceiptStore | None = None


def get_storage() -> ReceiptStore:
    global _storage  # noqa: PLW0603
    if _storage is not None:
        return _storage

    root = settings.local_storage_path
    if not root.is_absolute():
        root = Path(os.getcwd()) / root
    _storage = LocalReceiptStore(root)
    return _storage
