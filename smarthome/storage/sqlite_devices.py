"""SQLite document store for users and their devices."""

from __future__ import annotations

import asyncio
import contextlib
import json
import sqlite3
import threading
import time
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from loguru import logger

from smarthome.engine.model import DeviceDocument, apply_field_updates
from smarthome.errors import DeviceNotFoundError, StoreUnavailableError
from smarthome.storage.base import DeviceStoreGateway

_VALID_JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}


def _now_ms() -> int:
    return int(time.time() * 1000)


class SQLiteDeviceStore(DeviceStoreGateway):
    """Thread-safe SQLite gateway; documents are stored as JSON blobs.

    Blocking calls run on worker threads, serialized by one connection lock,
    so every method is atomic and read-your-writes holds.
    """

    name = "sqlite"
    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str | Path,
        *,
        busy_timeout_ms: int = 5000,
        journal_mode: str = "WAL",
    ) -> None:
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock:
            self._apply_pragmas(busy_timeout_ms=busy_timeout_ms, journal_mode=journal_mode)
        self.init_schema()

    def _apply_pragmas(self, *, busy_timeout_ms: int, journal_mode: str) -> None:
        cur = self._conn.cursor()
        cur.execute(f"PRAGMA busy_timeout = {max(0, int(busy_timeout_ms))}")
        mode = str(journal_mode or "").strip().upper()
        if mode not in _VALID_JOURNAL_MODES:
            mode = "WAL"
        cur.execute(f"PRAGMA journal_mode = {mode}")

    def close_sync(self) -> None:
        with self._lock:
            self._conn.close()

    async def close(self) -> None:
        self.close_sync()

    def init_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            version = self._get_user_version(cur)
            if version < 1:
                self._migrate_to_v1(cur)
                version = 1
            if version != self.SCHEMA_VERSION:
                self._set_user_version(cur, self.SCHEMA_VERSION)
            self._conn.commit()

    @staticmethod
    def _get_user_version(cur: sqlite3.Cursor) -> int:
        cur.execute("PRAGMA user_version")
        row = cur.fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    def _set_user_version(cur: sqlite3.Cursor, version: int) -> None:
        cur.execute(f"PRAGMA user_version = {max(0, int(version))}")

    def _migrate_to_v1(self, cur: sqlite3.Cursor) -> None:
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id TEXT NOT NULL UNIQUE,
              data_json TEXT NOT NULL,
              created_at INTEGER NOT NULL,
              updated_at INTEGER NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS devices (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id TEXT NOT NULL,
              device_id TEXT NOT NULL,
              data_json TEXT NOT NULL,
              created_at INTEGER NOT NULL,
              updated_at INTEGER NOT NULL,
              UNIQUE(user_id, device_id)
            )
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_devices_user ON devices(user_id, device_id)")
        self._set_user_version(cur, 1)

    # ------------------------------------------------------------------
    # Synchronous API
    # ------------------------------------------------------------------

    def list_devices_sync(self, user_id: str) -> list[DeviceDocument]:
        with self._guard():
            cur = self._conn.cursor()
            cur.execute(
                "SELECT device_id, data_json FROM devices WHERE user_id = ? ORDER BY device_id",
                (str(user_id),),
            )
            rows = cur.fetchall()
        return [
            DeviceDocument.from_dict(json.loads(str(row["data_json"] or "{}")), device_id=str(row["device_id"]))
            for row in rows
        ]

    def get_device_sync(self, user_id: str, device_id: str) -> DeviceDocument:
        with self._guard():
            data = self._load_device_locked(self._conn.cursor(), user_id, device_id)
        return DeviceDocument.from_dict(data, device_id=device_id)

    def update_fields_sync(self, user_id: str, device_id: str, updates: Mapping[str, Any]) -> dict[str, Any]:
        with self._guard():
            cur = self._conn.cursor()
            current = self._load_device_locked(cur, user_id, device_id)
            patched = apply_field_updates(current, updates)
            cur.execute(
                "UPDATE devices SET data_json = ?, updated_at = ? WHERE user_id = ? AND device_id = ?",
                (self._dumps(patched), _now_ms(), str(user_id), str(device_id)),
            )
            self._conn.commit()
        return patched

    def set_device_sync(self, user_id: str, device_id: str, data: Mapping[str, Any]) -> None:
        now = _now_ms()
        with self._guard():
            cur = self._conn.cursor()
            cur.execute(
                """
                INSERT INTO devices(user_id, device_id, data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, device_id)
                DO UPDATE SET data_json = excluded.data_json, updated_at = excluded.updated_at
                """,
                (str(user_id), str(device_id), self._dumps(dict(data)), now, now),
            )
            self._conn.commit()

    def delete_device_sync(self, user_id: str, device_id: str) -> None:
        with self._guard():
            cur = self._conn.cursor()
            cur.execute(
                "DELETE FROM devices WHERE user_id = ? AND device_id = ?",
                (str(user_id), str(device_id)),
            )
            self._conn.commit()

    def get_user_sync(self, user_id: str) -> dict[str, Any] | None:
        with self._guard():
            cur = self._conn.cursor()
            cur.execute("SELECT data_json FROM users WHERE user_id = ?", (str(user_id),))
            row = cur.fetchone()
        if row is None:
            return None
        return json.loads(str(row["data_json"] or "{}"))

    def update_user_field_sync(self, user_id: str, field: str, value: Any) -> None:
        now = _now_ms()
        with self._guard():
            cur = self._conn.cursor()
            cur.execute("SELECT data_json FROM users WHERE user_id = ?", (str(user_id),))
            row = cur.fetchone()
            data = json.loads(str(row["data_json"] or "{}")) if row else {}
            data[str(field)] = value
            cur.execute(
                """
                INSERT INTO users(user_id, data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id)
                DO UPDATE SET data_json = excluded.data_json, updated_at = excluded.updated_at
                """,
                (str(user_id), self._dumps(data), now, now),
            )
            self._conn.commit()

    def set_user_sync(self, user_id: str, data: Mapping[str, Any]) -> None:
        now = _now_ms()
        with self._guard():
            cur = self._conn.cursor()
            cur.execute(
                """
                INSERT INTO users(user_id, data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id)
                DO UPDATE SET data_json = excluded.data_json, updated_at = excluded.updated_at
                """,
                (str(user_id), self._dumps(dict(data)), now, now),
            )
            self._conn.commit()

    def find_user_ids_by_token_sync(self, access_token: str) -> list[str]:
        with self._guard():
            cur = self._conn.cursor()
            cur.execute("SELECT user_id, data_json FROM users ORDER BY id")
            rows = cur.fetchall()
        output: list[str] = []
        for row in rows:
            data = json.loads(str(row["data_json"] or "{}"))
            if data.get("fakeAccessToken") == access_token:
                output.append(str(row["user_id"]))
        return output

    # ------------------------------------------------------------------
    # DeviceStoreGateway
    # ------------------------------------------------------------------

    async def get_devices(self, user_id: str) -> list[DeviceDocument]:
        return await asyncio.to_thread(self.list_devices_sync, user_id)

    async def get_device(self, user_id: str, device_id: str) -> DeviceDocument:
        return await asyncio.to_thread(self.get_device_sync, user_id, device_id)

    async def update_fields(self, user_id: str, device_id: str, updates: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self.update_fields_sync, user_id, device_id, dict(updates))

    async def set_device(self, user_id: str, device_id: str, data: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self.set_device_sync, user_id, device_id, dict(data))

    async def delete_device(self, user_id: str, device_id: str) -> None:
        await asyncio.to_thread(self.delete_device_sync, user_id, device_id)

    async def get_user_field(self, user_id: str, field: str) -> Any:
        data = await asyncio.to_thread(self.get_user_sync, user_id)
        return (data or {}).get(field)

    async def update_user_field(self, user_id: str, field: str, value: Any) -> None:
        await asyncio.to_thread(self.update_user_field_sync, user_id, field, value)

    async def find_user_ids_by_token(self, access_token: str) -> list[str]:
        return await asyncio.to_thread(self.find_user_ids_by_token_sync, access_token)

    async def set_user(self, user_id: str, data: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self.set_user_sync, user_id, dict(data))

    # ------------------------------------------------------------------

    def _load_device_locked(self, cur: sqlite3.Cursor, user_id: str, device_id: str) -> dict[str, Any]:
        cur.execute(
            "SELECT data_json FROM devices WHERE user_id = ? AND device_id = ?",
            (str(user_id), str(device_id)),
        )
        row = cur.fetchone()
        if row is None:
            raise DeviceNotFoundError(str(user_id), str(device_id))
        return json.loads(str(row["data_json"] or "{}"))

    @contextlib.contextmanager
    def _guard(self) -> Iterator[None]:
        """Hold the connection lock and surface sqlite failures as ``storeUnavailable``."""
        with self._lock:
            try:
                yield
            except sqlite3.Error as e:
                with contextlib.suppress(sqlite3.Error):
                    self._conn.rollback()
                logger.error(f"SQLite device store failure db={self.db_path}: {e}")
                raise StoreUnavailableError(str(e)) from e

    @staticmethod
    def _dumps(data: dict[str, Any]) -> str:
        return json.dumps(data, ensure_ascii=False)

