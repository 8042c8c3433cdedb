"""
Key-value persistence for HighlightQ.

Plays the role of the browser's local storage area: cache entries, the
provider configuration and the highlighting toggle all live here as JSON
values. Two backends share the KeyValueStore protocol:

- MemoryKeyValueStore: process-local, used by tests and when no store path
  is configured
- SQLiteKeyValueStore: durable, one table keyed by string
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Generator, Iterable, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from highlightq.config import STORE_PATH
from highlightq.observability.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    def get_many(self, keys: Iterable[str]) -> dict[str, Any]: ...

    def set_many(self, items: Mapping[str, Any]) -> None: ...

    def remove_many(self, keys: Iterable[str]) -> None: ...


def get_value(store: KeyValueStore, key: str, default: Any = None) -> Any:
    return store.get_many([key]).get(key, default)


def set_value(store: KeyValueStore, key: str, value: Any) -> None:
    store.set_many({key: value})


class MemoryKeyValueStore:
    """Dict-backed store. Values are JSON round-tripped like the durable backend."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: json.loads(self._data[key]) for key in keys if key in self._data}

    def set_many(self, items: Mapping[str, Any]) -> None:
        for key, value in items.items():
            self._data[key] = json.dumps(value)

    def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class SQLiteKeyValueStore:
    """
    Durable store on a single SQLite table.

    Side Effects:
        - Creates the database file and `kv_store` table on first use
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        # API handlers and the CLI share one connection from the event-loop thread
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.commit()
        logger.info("Opened key-value store at %s", self.db_path)

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error:
            self._conn.rollback()
            raise

    def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return {}
        placeholders = ",".join("?" for _ in wanted)
        rows = self._conn.execute(
            f"SELECT key, value FROM kv_store WHERE key IN ({placeholders})",  # noqa: S608
            wanted,
        ).fetchall()
        return {key: json.loads(value) for key, value in rows}

    def set_many(self, items: Mapping[str, Any]) -> None:
        if not items:
            return
        with self._transaction() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                [(key, json.dumps(value)) for key, value in items.items()],
            )

    def remove_many(self, keys: Iterable[str]) -> None:
        doomed = [(key,) for key in keys]
        if not doomed:
            return
        with self._transaction() as conn:
            conn.executemany("DELETE FROM kv_store WHERE key = ?", doomed)

    def close(self) -> None:
        self._conn.close()


def open_store(path: str | None = None) -> KeyValueStore:
    """Durable store when a path is configured, in-memory otherwise."""
    path = STORE_PATH if path is None else path
    if path:
        return SQLiteKeyValueStore(path)
    return MemoryKeyValueStore()
