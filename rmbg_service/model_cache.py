"""
Persistent model cache.

A single SQLite file (the "ModelCache" store) holds one ``models`` table keyed
by cache key. Each record keeps the raw model bytes, the creation timestamp in
milliseconds and the model version tag. Every storage failure degrades to a
cache miss or a skipped write; callers never see an exception from here.
"""

from __future__ import annotations

import asyncio
from contextlib import closing
from dataclasses import dataclass
import logging
from pathlib import Path
import sqlite3
import time
from typing import Optional

logger = logging.getLogger(__name__)

STORE_FILENAME = "ModelCache.sqlite3"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS models (
    key TEXT PRIMARY KEY,
    data BLOB NOT NULL,
    timestamp INTEGER NOT NULL,
    version TEXT NOT NULL
)
"""


@dataclass(frozen=True)
class CachedModelEntry:
    key: str
    data: bytes
    timestamp: int
    version: str


class ModelCache:
    """Best-effort key-value store for downloaded model buffers."""

    def __init__(self, cache_dir: Optional[Path], version: str, enabled: bool = True):
        self.version = version
        self.enabled = enabled and cache_dir is not None
        self._path = Path(cache_dir) / STORE_FILENAME if cache_dir is not None else None

    def _connect(self) -> sqlite3.Connection:
        if self._path is None:
            raise sqlite3.OperationalError("model cache has no storage directory")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path))
        conn.execute(_SCHEMA)
        return conn

    def _read_entry(self, key: str) -> Optional[CachedModelEntry]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT key, data, timestamp, version FROM models WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return CachedModelEntry(key=row[0], data=bytes(row[1]), timestamp=int(row[2]), version=row[3])

    def _write_entry(self, entry: CachedModelEntry) -> None:
        with closing(self._connect()) as conn:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO models (key, data, timestamp, version) VALUES (?, ?, ?, ?)",
                    (entry.key, sqlite3.Binary(entry.data), entry.timestamp, entry.version),
                )

    async def get_entry(self, key: str) -> Optional[CachedModelEntry]:
        """Return the raw record for ``key`` without version checks."""
        if not self.enabled:
            return None
        try:
            return await asyncio.to_thread(self._read_entry, key)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("model cache: read failed for key=%s: %s", key, exc)
            return None

    async def get(self, key: str) -> Optional[bytes]:
        """Return cached model bytes, or None on miss, version mismatch or storage failure."""
        entry = await self.get_entry(key)
        if entry is None or not entry.data:
            return None
        if entry.version != self.version:
            logger.info(
                "model cache: ignoring key=%s stored version=%s (expected %s)",
                key,
                entry.version,
                self.version,
            )
            return None
        return entry.data

    async def put(self, key: str, data: bytes) -> bool:
        """Store ``data`` under ``key``. Returns False when the write was skipped or failed."""
        if not self.enabled:
            return False
        entry = CachedModelEntry(
            key=key,
            data=bytes(data),
            timestamp=int(time.time() * 1000),
            version=self.version,
        )
        try:
            await asyncio.to_thread(self._write_entry, entry)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("model cache: write failed for key=%s: %s", key, exc)
            return False
        logger.debug("model cache: stored key=%s (%d bytes)", key, len(entry.data))
        return True
