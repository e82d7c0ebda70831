# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Bounded ingestion queue between the listener and the writer.

Records are dropped, not blocked on, when the queue is full.
"""

import threading
import time
from collections import deque
from typing import Optional

import logging

from ..capture.record import LogRecord

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100000


class IngestQueue:
    """
    Thread-safe bounded FIFO of log records.

    Features:
    - Lossy backpressure (enqueue fails at capacity)
    - Non-blocking and timed dequeue
    - Wake-on-enqueue for the consumer
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        """
        Initialize queue.

        Args:
            capacity: Maximum number of pending records
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._records: deque = deque()
        self._cond = threading.Condition(threading.Lock())
        self._closed = False
        self.enqueued = 0
        self.dropped = 0

    def enqueue(self, record: LogRecord) -> bool:
        """
        Append a record.

        Args:
            record: Record to append

        Returns:
            True if queued, False if the queue is full or closed
        """
        with self._cond:
            if self._closed or len(self._records) >= self.capacity:
                self.dropped += 1
                return False
            self._records.append(record)
            self.enqueued += 1
            self._cond.notify()
            return True

    def try_dequeue(self) -> Optional[LogRecord]:
        """Pop the oldest record without waiting."""
        with self._cond:
            if not self._records:
                return None
            return self._records.popleft()

    def dequeue(self, timeout: float) -> Optional[LogRecord]:
        """
        Pop the oldest record, waiting up to ``timeout`` seconds for one.

        Returns:
            The record, or None on timeout or when closed and empty
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            while not self._records:
                if self._closed:
                    return None
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)
            return self._records.popleft()

    def close(self) -> None:
        """Refuse further records and wake any waiting consumer."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        logger.debug(f"Ingest queue closed with {len(self)} pending records")

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._records)

    def is_empty(self) -> bool:
        return len(self) == 0
