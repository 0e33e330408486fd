"""hydrator.core.store

Durable key -> record mapping with integrity verification.

A record is replaced whole or not at all. Nobody reads back a document whose
digest does not match what was written.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel

from hydrator.core.codec import Codec
from hydrator.core.config import HydrationConfig
from hydrator.core.exceptions import (
    CodecError,
    ConfigurationError,
    IntegrityError,
    StoreError,
    StoreReadError,
    StoreWriteError,
)
from hydrator.core.hashing import canonical_json, digest_text
from hydrator.core.time import parse_dt, utc_now
from hydrator.security.cipher import StateCipher

logger = logging.getLogger(__name__)

RECORD_FORMAT_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    hash TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1,
    compressed INTEGER NOT NULL DEFAULT 0,
    encrypted INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);
"""

VerifyStatus = Literal["ok", "missing", "corrupt", "locked"]


class Record(BaseModel):
    """Persisted unit. Immutable once written."""

    data: str
    hash: str
    version: int = RECORD_FORMAT_VERSION
    compressed: bool = False
    encrypted: bool = False
    updated_at: datetime | None = None

    model_config = {"frozen": True}

    def to_wire(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "hash": self.hash,
            "version": self.version,
            "compressed": self.compressed,
            "encrypted": self.encrypted,
        }


@runtime_checkable
class StoreBackend(Protocol):
    def read(self, key: str) -> Record | None: ...

    def write(self, key: str, record: Record) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...

    def keys(self) -> set[str]: ...

    def close(self) -> None: ...


@dataclass
class MemoryBackend:
    """Process-local backend. Useful for tests and ephemeral components."""

    _records: dict[str, Record] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def read(self, key: str) -> Record | None:
        with self._lock:
            return self._records.get(key)

    def write(self, key: str, record: Record) -> None:
        with self._lock:
            self._records[key] = record

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def keys(self) -> set[str]:
        with self._lock:
            return set(self._records)

    def close(self) -> None:
        return None


@dataclass
class SQLiteBackend:
    """Single-file SQLite backend. One row per key; writes are single-statement upserts."""

    db_path: Path

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()

    def _init_schema(self) -> None:
        with self.conn:
            self.conn.executescript(SCHEMA)
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA synchronous=NORMAL")

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def read(self, key: str) -> Record | None:
        try:
            with self._lock:
                row = self.conn.execute("SELECT * FROM records WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreReadError(f"read failed for key {key}: {e}") from e
        if row is None:
            return None
        return Record(
            data=str(row["data"]),
            hash=str(row["hash"]),
            version=int(row["version"]),
            compressed=bool(row["compressed"]),
            encrypted=bool(row["encrypted"]),
            updated_at=parse_dt(str(row["updated_at"])),
        )

    def write(self, key: str, record: Record) -> None:
        updated_at = (record.updated_at or utc_now()).isoformat()
        try:
            with self._lock, self.conn:
                self.conn.execute(
                    """
                    INSERT INTO records (key, data, hash, version, compressed, encrypted, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        data = excluded.data,
                        hash = excluded.hash,
                        version = excluded.version,
                        compressed = excluded.compressed,
                        encrypted = excluded.encrypted,
                        updated_at = excluded.updated_at
                    """,
                    (
                        key,
                        record.data,
                        record.hash,
                        record.version,
                        int(record.compressed),
                        int(record.encrypted),
                        updated_at,
                    ),
                )
        except sqlite3.Error as e:
            raise StoreWriteError(f"write failed for key {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self._lock, self.conn:
                self.conn.execute("DELETE FROM records WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StoreWriteError(f"delete failed for key {key}: {e}") from e

    def clear(self) -> None:
        try:
            with self._lock, self.conn:
                self.conn.execute("DELETE FROM records")
        except sqlite3.Error as e:
            raise StoreWriteError(f"clear failed: {e}") from e

    def keys(self) -> set[str]:
        try:
            with self._lock:
                rows = self.conn.execute("SELECT key FROM records").fetchall()
        except sqlite3.Error as e:
            raise StoreReadError(f"key listing failed: {e}") from e
        return {str(r[0]) for r in rows}


class StateStore:
    """Applies the codec on the way in and verifies the digest on the way out."""

    def __init__(self, backend: StoreBackend | None = None, codec: Codec | None = None):
        self.backend: StoreBackend = backend if backend is not None else MemoryBackend()
        self.codec = codec or Codec()

    def set_encryption_key(self, key: str | None) -> None:
        self.codec.cipher.set_key(key)

    def close(self) -> None:
        self.backend.close()

    def put(self, key: str, document: Any, compress: bool = False, encrypt: bool = False) -> Record:
        text = canonical_json(document)
        record = Record(
            data=self.codec.encode(text, compress=compress, encrypt=encrypt),
            hash=digest_text(text),
            version=RECORD_FORMAT_VERSION,
            compressed=compress,
            encrypted=encrypt,
            updated_at=utc_now(),
        )
        try:
            self.backend.write(key, record)
        except StoreError:
            raise
        except OSError as e:
            raise StoreWriteError(f"write failed for key {key}: {e}") from e

        logger.debug("record_written", extra={"key": key, "compressed": compress, "encrypted": encrypt})
        return record

    def get_record(self, key: str) -> Record | None:
        try:
            return self.backend.read(key)
        except StoreError:
            raise
        except OSError as e:
            raise StoreReadError(f"read failed for key {key}: {e}") from e

    def get(self, key: str, decompress: bool = False, decrypt: bool = False) -> Any | None:
        """Return the document stored under ``key`` or None when absent.

        Raises:
            IntegrityError: digest mismatch (corruption or tampering).
            CodecError: payload cannot be decoded with the requested transforms.
            ConfigurationError: record is encrypted and no key is configured.
        """

        record = self.get_record(key)
        if record is None:
            return None

        apply_decrypt = decrypt and record.encrypted
        apply_decompress = decompress and record.compressed
        if (record.encrypted and not apply_decrypt) or (record.compressed and not apply_decompress):
            raise CodecError(
                f"Record {key} is stored compressed={record.compressed} encrypted={record.encrypted}; "
                "read it with the matching decompress/decrypt flags"
            )

        text = self.codec.decode(record.data, decompress=apply_decompress, decrypt=apply_decrypt)
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            if apply_decrypt or apply_decompress:
                raise CodecError(f"Decoded payload for {key} is not JSON") from e
            raise IntegrityError(key, record.hash, "<unparseable>") from e

        actual = digest_text(canonical_json(document))
        if actual != record.hash:
            raise IntegrityError(key, record.hash, actual)
        return document

    def verify(self, key: str) -> VerifyStatus:
        """Integrity status of one key, without handing the document out."""

        if self.get_record(key) is None:
            return "missing"
        try:
            self.get(key, decompress=True, decrypt=True)
        except ConfigurationError:
            return "locked"
        except (IntegrityError, CodecError):
            return "corrupt"
        return "ok"

    def delete(self, key: str) -> None:
        self.backend.delete(key)

    def clear(self) -> None:
        self.backend.clear()

    def keys(self) -> set[str]:
        return self.backend.keys()


def open_store(config: HydrationConfig) -> StateStore:
    """Open the SQLite store under ``config.data_dir``."""

    codec = Codec(StateCipher(config.encryption_key))
    return StateStore(SQLiteBackend(config.store_path), codec=codec)
