# kv_store.py
# Description: Persistent key-value store for serialized blobs (conversations, prompts, model cache)
#
# Imports
import time
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union, runtime_checkable
#
# Third-party imports
from loguru import logger
#
# Local imports
from llmchat.DB.base_db import BaseDB
#
#######################################################################################################################
#
# Classes:

@runtime_checkable
class KeyValueStore(Protocol):
    """Generic get/set/delete of string blobs."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> List[str]: ...


class InMemoryKeyValueStore:
    """Dictionary-backed store, used for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SQLiteKeyValueStore(BaseDB):
    """
    SQLite-backed store. One row per key; writes are committed immediately
    since the engine treats every save as a durability point.
    """

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at REAL NOT NULL
        )
    """

    def __init__(self, db_path: Union[str, Path]):
        super().__init__(db_path)

    def _initialize_schema(self) -> None:
        conn = self._get_connection()
        with conn:
            conn.execute(self._SCHEMA)
        logger.debug(f"kv_store schema ready in {self.db_path_str}")

    def get(self, key: str) -> Optional[str]:
        row = self._get_connection().execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row is not None else None

    def set(self, key: str, value: str) -> None:
        conn = self._get_connection()
        with conn:
            conn.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (key, value, time.time()),
            )

    def delete(self, key: str) -> None:
        conn = self._get_connection()
        with conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> List[str]:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = self._get_connection().execute(
            "SELECT key FROM kv_store WHERE key LIKE ? ESCAPE '\\' ORDER BY key", (f"{escaped}%",)
        ).fetchall()
        return [row["key"] for row in rows]

#
# End of kv_store.py
#######################################################################################################################
