# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
SQLite connection wrapper for one hourly database file.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

logger = logging.getLogger(__name__)


class SQLiteClient:
    """
    Holds a single long-lived connection to one database file.

    The connection is opened by one thread at startup and then used only by
    the writer thread, so ``check_same_thread`` is disabled.
    """

    def __init__(self, db_path: str):
        """
        Initialize client.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        """
        Open the connection if needed.

        Raises:
            sqlite3.Error: If the file cannot be opened
        """
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        return self._conn

    def initialize_database(self) -> None:
        """Open the database file (creating it) and apply PRAGMAs."""
        conn = self.connect()
        conn.execute("PRAGMA synchronous=NORMAL")
        logger.debug(f"Opened database {self.db_path}")

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Yield the open connection."""
        yield self.connect()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Execute one statement and commit."""
        conn = self.connect()
        cursor = conn.execute(sql, params)
        conn.commit()
        return cursor

    def exists(self) -> bool:
        """Check whether the database file exists on disk."""
        return self.db_path.exists()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        """Commit pending work and release the connection."""
        if self._conn is None:
            return
        try:
            self._conn.commit()
        finally:
            self._conn.close()
            self._conn = None
            logger.debug(f"Closed database {self.db_path}")
