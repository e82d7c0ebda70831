# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
UDP listener for raw and syslog-style log messages.

Receives datagrams, turns each one into a LogRecord and hands it to the
ingest queue. Never touches storage.
"""

import logging
import socket
import threading
import time
from typing import Optional, Tuple

from .record import LogRecord, MAX_PAYLOAD_SIZE
from ..processing.ingest_queue import IngestQueue

logger = logging.getLogger(__name__)

DEFAULT_RECV_BUFFER_SIZE = 262144

# Overflow warnings: first drop, then every Nth
DROP_WARNING_EVERY = 1000


class UdpListener:
    """
    Connectionless listener feeding the ingest queue.

    Waits up to ``poll_interval`` for each datagram so that a stop request
    is noticed within that bound.
    """

    def __init__(
        self,
        queue: IngestQueue,
        host: str = "0.0.0.0",
        port: int = 5140,
        recv_buffer_size: int = DEFAULT_RECV_BUFFER_SIZE,
        poll_interval: float = 1.0,
        max_datagram_size: int = MAX_PAYLOAD_SIZE,
    ):
        """
        Initialize listener.

        Args:
            queue: Queue receiving the records
            host: Address to bind
            port: UDP port to bind (0 picks an ephemeral port)
            recv_buffer_size: Requested SO_RCVBUF size in bytes
            poll_interval: Maximum seconds to wait for one datagram
            max_datagram_size: Maximum bytes read per datagram
        """
        self.queue = queue
        self.host = host
        self.port = port
        self.recv_buffer_size = recv_buffer_size
        self.poll_interval = poll_interval
        self.max_datagram_size = max_datagram_size

        self._sock: Optional[socket.socket] = None
        self.received = 0
        self.dropped = 0

    def open(self) -> None:
        """
        Create and bind the socket.

        Raises:
            OSError: If the socket cannot be created or bound
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, self.recv_buffer_size)
        except OSError as e:
            logger.warning(f"Could not set receive buffer to {self.recv_buffer_size} bytes: {e}")

        sock.settimeout(self.poll_interval)
        self._sock = sock
        logger.info(f"Listening for UDP log messages on {self.address[0]}:{self.address[1]}")

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) of the socket."""
        if self._sock is None:
            raise RuntimeError("Listener is not open")
        return self._sock.getsockname()

    def poll_once(self) -> bool:
        """
        Wait for one datagram and enqueue it.

        Returns:
            True if a datagram was received (queued or dropped), False on timeout
        """
        if self._sock is None:
            raise RuntimeError("Listener is not open")

        try:
            data, addr = self._sock.recvfrom(self.max_datagram_size)
        except socket.timeout:
            return False

        record = LogRecord.from_datagram(data, addr, received_at=int(time.time()))
        self.received += 1

        if not self.queue.enqueue(record):
            self.dropped += 1
            if self.dropped % DROP_WARNING_EVERY == 1:
                logger.warning(
                    f"Ingest queue full ({len(self.queue)} pending), dropping message "
                    f"from {record.source_address} ({self.dropped} dropped so far)"
                )
        return True

    def run(self, stop_event: threading.Event) -> None:
        """
        Main receive loop.

        Runs until ``stop_event`` is set.
        """
        logger.info("Listener started")

        while not stop_event.is_set():
            try:
                self.poll_once()
            except OSError as e:
                if stop_event.is_set():
                    break
                logger.error(f"Error receiving datagram: {e}")
                time.sleep(0.1)

        logger.info(f"Listener stopped ({self.received} received, {self.dropped} dropped)")

    def close(self) -> None:
        """Release the socket."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None
