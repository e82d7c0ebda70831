# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Schema for hourly log databases.
"""

from .sqlite_client import SQLiteClient

LOG_TABLE = "log"

CREATE_LOG_TABLE = """
CREATE TABLE IF NOT EXISTS log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp INTEGER,
    host TEXT,
    message TEXT
)
"""

INSERT_LOG = "INSERT INTO log (timestamp, host, message) VALUES (?, ?, ?)"


def create_schema(client: SQLiteClient) -> None:
    """Create the log table. Safe to call on an existing file."""
    client.execute(CREATE_LOG_TABLE)


def table_exists(client: SQLiteClient, name: str = LOG_TABLE) -> bool:
    with client.get_connection() as conn:
        row = conn.execute(
            "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
            (name,),
        ).fetchone()
        return row[0] > 0
