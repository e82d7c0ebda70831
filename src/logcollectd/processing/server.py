# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Main server for logcollectd.

Orchestrates the UDP listener, the hourly database writer, the retention
compactor, and graceful shutdown.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from .database.writer import DatabaseOpenError, HourlyLogWriter
from .ingest_queue import IngestQueue
from ..capture.listener import UdpListener
from ..config import Config
from ..retention.compactor import RetentionCompactor
from ..retention.compression import get_compressor

logger = logging.getLogger(__name__)


class CollectorStartupError(RuntimeError):
    """Raised when the collector cannot start."""


class CollectorServer:
    """
    Main server for log collection.

    Manages:
    - Ingest queue
    - UDP listener thread
    - Database writer thread
    - Retention compactor thread
    - Graceful shutdown (stop ingest, drain queue, close database)
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize collector server.

        Args:
            config: Configuration instance (creates default if not provided)
        """
        self.config = config or Config()

        self.queue: Optional[IngestQueue] = None
        self.listener: Optional[UdpListener] = None
        self.writer: Optional[HourlyLogWriter] = None
        self.compactor: Optional[RetentionCompactor] = None

        self._listener_stop = threading.Event()
        self._writer_stop = threading.Event()
        self._compactor_stop = threading.Event()
        self._stopped = threading.Event()
        self._threads: List[threading.Thread] = []
        self._lock = threading.RLock()
        self.running = False

    def _check_directory(self) -> None:
        """Verify that the database directory exists."""
        db_dir = self.config.db_dir
        if not db_dir.is_dir():
            raise CollectorStartupError(f"Database directory {db_dir} does not exist")
        logger.debug(f"Database directory: {db_dir}")

    def _initialize_database(self) -> None:
        """Create the queue and writer, and open the current hour's file."""
        self.queue = IngestQueue(self.config.queue_capacity)
        self.writer = HourlyLogWriter(
            db_dir=self.config.db_dir,
            queue=self.queue,
            idle_timeout=self.config.idle_timeout,
        )

        try:
            self.writer.open()
        except DatabaseOpenError as e:
            raise CollectorStartupError(str(e)) from e

        logger.info("Database initialized successfully")

    def _initialize_listener(self) -> None:
        """Bind the UDP socket."""
        port = self.config.resolve_port()
        self.listener = UdpListener(
            queue=self.queue,
            host=self.config.host,
            port=port,
            recv_buffer_size=self.config.recv_buffer_size,
            poll_interval=self.config.poll_interval,
        )

        try:
            self.listener.open()
        except OSError as e:
            raise CollectorStartupError(
                f"Cannot bind UDP socket on {self.config.host}:{port}: {e}"
            ) from e

    def _initialize_compactor(self) -> None:
        """Create the retention compactor."""
        try:
            compressor = get_compressor(self.config.compressor, self.config.compression_preset)
        except ValueError as e:
            raise CollectorStartupError(str(e)) from e

        writer = self.writer
        self.compactor = RetentionCompactor(
            db_dir=self.config.db_dir,
            compress_age=self.config.compress_age,
            interval=self.config.compress_interval,
            active_bucket=lambda: writer.current_bucket,
            compressor=compressor,
        )

    def _start_thread(self, name: str, target, *args) -> None:
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)

    def start(self) -> None:
        """
        Start the server.

        Raises:
            CollectorStartupError: If the directory is missing, the socket
                cannot be bound or the initial database cannot be opened
        """
        if self.running:
            logger.warning("Server already running")
            return

        logger.info("Starting logcollectd...")

        try:
            self._check_directory()
            self._initialize_database()
            self._initialize_listener()
            self._initialize_compactor()
        except CollectorStartupError:
            self._release()
            raise

        self.running = True
        self._stopped.clear()

        self._start_thread("writer", self.writer.run, self._writer_stop, self.config.drain_on_shutdown)
        self._start_thread("listener", self.listener.run, self._listener_stop)
        self._start_thread("compactor", self.compactor.run, self._compactor_stop)

        logger.info("Server started")

    def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the server gracefully.

        Stops accepting datagrams first, then lets the writer drain the queue
        and close the active file, then stops the compactor.
        """
        with self._lock:
            if not self.running:
                return
            self.running = False

        logger.info("Stopping server...")

        # Stop ingest
        self._listener_stop.set()
        self._join("listener", timeout)
        if self.listener:
            self.listener.close()
        if self.queue:
            self.queue.close()

        # Drain and close the active file
        self._writer_stop.set()
        self._join("writer", timeout)

        self._compactor_stop.set()
        self._join("compactor", timeout)

        self._threads.clear()
        self._stopped.set()
        logger.info("Server stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the server has stopped.

        Returns:
            True if stopped, False on timeout
        """
        return self._stopped.wait(timeout)

    def get_stats(self) -> Dict[str, Any]:
        """Get pipeline counters."""
        return {
            "received": self.listener.received if self.listener else 0,
            "dropped": self.listener.dropped if self.listener else 0,
            "queued": len(self.queue) if self.queue else 0,
            "written": self.writer.written if self.writer else 0,
            "write_failures": self.writer.failed if self.writer else 0,
            "rotations": self.writer.rotations if self.writer else 0,
            "compressed": self.compactor.compressed if self.compactor else 0,
            "compression_failures": self.compactor.failed if self.compactor else 0,
            "active_bucket": self.writer.current_bucket if self.writer else None,
        }

    def _join(self, name: str, timeout: float) -> None:
        for thread in self._threads:
            if thread.name == name:
                thread.join(timeout)
                if thread.is_alive():
                    logger.warning(f"{name} thread did not stop within {timeout}s")

    def _release(self) -> None:
        """Close whatever was opened by a failed start."""
        if self.listener:
            self.listener.close()
        if self.writer:
            self.writer.close()


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
