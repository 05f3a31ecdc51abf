# base_db.py
# Description: Base class for standardized database path handling
#
"""
base_db.py
----------

Base class that provides standardized path handling for the database modules:
- Path type handling (str vs Path)
- Memory database special case (':memory:')
- Directory creation for file-based databases
"""

import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from loguru import logger


class BaseDB(ABC):
    """
    Base class for SQLite-backed stores.

    A single connection is kept open for the lifetime of the object so that
    ':memory:' databases survive between calls.
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Args:
            db_path: Path to the SQLite database file or ':memory:'
        """
        if isinstance(db_path, Path):
            self.is_memory_db = False
            self.db_path = db_path.expanduser().resolve()
        else:
            self.is_memory_db = (db_path == ':memory:')
            self.db_path = Path(":memory:") if self.is_memory_db else Path(db_path).expanduser().resolve()

        self.db_path_str = ':memory:' if self.is_memory_db else str(self.db_path)
        self._conn: Optional[sqlite3.Connection] = None

        if not self.is_memory_db:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create database directory {self.db_path.parent}: {e}")
                raise

        self._initialize_schema()

        logger.info(f"{self.__class__.__name__} initialized with path: {self.db_path_str}")

    @abstractmethod
    def _initialize_schema(self) -> None:
        """Create tables. Implemented by subclasses."""

    def _get_connection(self) -> sqlite3.Connection:
        """Get the shared connection, opening it on first use."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path_str)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self) -> None:
        """Close the shared connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
