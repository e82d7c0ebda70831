# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Hourly rotating database writer.

Sole owner of the active database handle. Drains the ingest queue and writes
each record into the file for the hour it was received in:
- db/2025061412.sqlite3 for records received 12:00-12:59 local time
- the active file is closed right before the next hour's file is opened
"""

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from .partition import bucket_filename, bucket_key
from .schema import INSERT_LOG, create_schema
from .sqlite_client import SQLiteClient
from ...capture.record import LogRecord
from ..ingest_queue import IngestQueue

logger = logging.getLogger(__name__)

DEFAULT_ROTATION_GRACE = 5.0


class DatabaseOpenError(RuntimeError):
    """Raised when the initial database file cannot be opened."""


class HourlyLogWriter:
    """
    Writes queued log records into hour-partitioned SQLite files.

    Rotation states:
    - NoFileOpen: ``current_bucket`` is None
    - FileOpen(key): ``current_bucket`` is the open file's bucket key

    The rotation target is the bucket of the record being written, or the
    wall-clock bucket while idle, so the next hour's file appears on time
    even without traffic. Idle rotation waits ``rotation_grace`` seconds past
    the hour and never moves backward, so records stamped just before the
    hour but dequeued after it still find their file open. Backward clock
    jumps seen in record timestamps reopen the earlier file.
    """

    def __init__(
        self,
        db_dir: Path,
        queue: IngestQueue,
        clock: Callable[[], float] = time.time,
        idle_timeout: float = 0.1,
        rotation_grace: float = DEFAULT_ROTATION_GRACE,
    ):
        """
        Initialize writer.

        Args:
            db_dir: Directory holding the hourly database files
            queue: Queue to drain
            clock: Wall-clock source (epoch seconds)
            idle_timeout: Maximum seconds to wait for a record per iteration
            rotation_grace: Seconds past the hour before an idle writer rotates
        """
        self.db_dir = Path(db_dir)
        self.queue = queue
        self.clock = clock
        self.idle_timeout = idle_timeout
        self.rotation_grace = rotation_grace

        self._client: Optional[SQLiteClient] = None
        self._bucket: Optional[str] = None
        self._latest_bucket: Optional[str] = None

        self.written = 0
        self.failed = 0
        self.rotations = 0

    @property
    def current_bucket(self) -> Optional[str]:
        """Bucket key of the active file, None when no file is open."""
        return self._bucket

    @property
    def current_path(self) -> Optional[Path]:
        if self._bucket is None:
            return None
        return self.db_dir / bucket_filename(self._bucket)

    def open(self) -> None:
        """
        Open the file for the current hour.

        Raises:
            DatabaseOpenError: If the file cannot be opened or initialized
        """
        key = bucket_key(self.clock())
        try:
            self.rotate_if_needed(key)
        except (sqlite3.Error, OSError) as e:
            raise DatabaseOpenError(
                f"Cannot open database {self.db_dir / bucket_filename(key)}: {e}"
            ) from e

    def rotate_if_needed(self, key: str) -> bool:
        """
        Make ``key`` the active bucket.

        Closes the active file first, then opens or creates the new one and
        ensures its schema.

        Args:
            key: Target bucket key

        Returns:
            True if a rotation happened

        Raises:
            sqlite3.Error: If the new file cannot be opened
        """
        if key == self._bucket and self._client is not None:
            return False

        if self._latest_bucket is None or key > self._latest_bucket:
            self._latest_bucket = key

        self._close_active()

        path = self.db_dir / bucket_filename(key)
        client = SQLiteClient(str(path))
        try:
            client.initialize_database()
            create_schema(client)
        except sqlite3.Error:
            client.close()
            raise

        self._client = client
        self._bucket = key
        self.rotations += 1
        logger.info(f"Writing to database file {path}")
        return True

    def write(self, record: LogRecord) -> bool:
        """
        Insert a record into the active file.

        Failures are logged and the record is discarded.

        Returns:
            True if the record was stored
        """
        if self._client is None:
            logger.error(
                f"No database open, discarding message from {record.source_address} "
                f"received at {record.received_at}"
            )
            self.failed += 1
            return False

        try:
            with self._client.get_connection() as conn:
                conn.execute(INSERT_LOG, (record.received_at, record.source_address, record.message))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to insert message from {record.source_address}: {e}")
            self.failed += 1
            return False

        self.written += 1
        return True

    def process_next(self, timeout: Optional[float] = None) -> bool:
        """
        Run one writer iteration: rotate if needed, then write one record.

        Args:
            timeout: Seconds to wait for a record (defaults to idle_timeout)

        Returns:
            True if a record was dequeued
        """
        if timeout is None:
            timeout = self.idle_timeout

        record = self.queue.dequeue(timeout)
        if record is not None:
            target = bucket_key(record.received_at)
        else:
            target = self._idle_target()

        self._rotate_safely(target)

        if record is None:
            return False

        self.write(record)
        return True

    def drain(self) -> int:
        """
        Write every record still queued.

        Returns:
            Number of records dequeued
        """
        count = 0
        while True:
            record = self.queue.try_dequeue()
            if record is None:
                break
            self._rotate_safely(bucket_key(record.received_at))
            self.write(record)
            count += 1
        return count

    def run(self, stop_event: threading.Event, drain: bool = True) -> None:
        """
        Main writer loop.

        Runs until ``stop_event`` is set, then drains (or discards) what is
        left in the queue and closes the active file.

        Args:
            stop_event: Set to request shutdown
            drain: Write remaining queued records before exiting
        """
        logger.info("Writer started")

        try:
            while not stop_event.is_set():
                try:
                    self.process_next()
                except Exception as e:
                    logger.error(f"Error in writer loop: {e}", exc_info=True)
                    time.sleep(1)  # Back off on error

            if drain:
                drained = self.drain()
                if drained:
                    logger.info(f"Drained {drained} queued messages on shutdown")
            else:
                pending = len(self.queue)
                if pending:
                    logger.warning(f"Discarding {pending} queued messages on shutdown")
        finally:
            self.close()

        logger.info(f"Writer stopped ({self.written} written, {self.failed} failed)")

    def close(self) -> None:
        """Flush and release the active file."""
        self._close_active()

    def _idle_target(self) -> str:
        target = bucket_key(self.clock() - self.rotation_grace)
        if self._latest_bucket is not None and target < self._latest_bucket:
            return self._latest_bucket
        return target

    def _rotate_safely(self, key: str) -> None:
        try:
            self.rotate_if_needed(key)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to open database for bucket {key}: {e}")

    def _close_active(self) -> None:
        if self._client is None:
            return
        try:
            self._client.close()
        except sqlite3.Error as e:
            logger.error(f"Error closing database {self._client.db_path}: {e}")
        finally:
            self._client = None
            self._bucket = None
