# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Shared pytest fixtures.
"""

import sqlite3
import tempfile
import time
from pathlib import Path

import pytest

from logcollectd.capture.record import LogRecord


@pytest.fixture
def db_dir():
    """Temporary database directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def local_time(year, month, day, hour, minute=0, second=0) -> float:
    """Epoch seconds for a local wall-clock time."""
    return time.mktime((year, month, day, hour, minute, second, 0, 0, -1))


def make_record(message: str, received_at: float, host: str = "127.0.0.1") -> LogRecord:
    return LogRecord(received_at=int(received_at), source_address=host, payload=message.encode("utf-8"))


def read_rows(path: Path):
    """All rows of the log table, in id order."""
    conn = sqlite3.connect(str(path))
    try:
        return conn.execute("SELECT id, timestamp, host, message FROM log ORDER BY id").fetchall()
    finally:
        conn.close()
