# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""Log record captured from a single datagram."""

import time
from dataclasses import dataclass
from typing import Optional, Tuple

MAX_PAYLOAD_SIZE = 65535


@dataclass(frozen=True)
class LogRecord:
    """One received message: receipt time, sender and raw payload."""

    received_at: int
    source_address: str
    payload: bytes

    @property
    def message(self) -> str:
        """Payload as text. Invalid UTF-8 is replaced, not rejected."""
        return self.payload.decode("utf-8", errors="replace")

    @classmethod
    def from_datagram(
        cls,
        data: bytes,
        address: Tuple[str, int],
        received_at: Optional[int] = None,
    ) -> "LogRecord":
        """
        Build a record from a received datagram.

        Args:
            data: Datagram payload (truncated to 65,535 bytes)
            address: Sender address as returned by ``recvfrom``
            received_at: Receipt time in epoch seconds (defaults to now)
        """
        if received_at is None:
            received_at = int(time.time())
        return cls(
            received_at=received_at,
            source_address=address[0],
            payload=bytes(data[:MAX_PAYLOAD_SIZE]),
        )
