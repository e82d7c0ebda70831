# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the UDP listener.
"""

import logging
import socket
import threading
import time
from unittest.mock import patch

import pytest

from logcollectd.capture.listener import UdpListener
from logcollectd.capture.record import LogRecord
from logcollectd.processing.ingest_queue import IngestQueue
from conftest import make_record


@pytest.fixture
def listener():
    """Listener bound to an ephemeral loopback port."""
    queue = IngestQueue(100)
    udp = UdpListener(queue, host="127.0.0.1", port=0, poll_interval=0.2)
    udp.open()
    yield udp
    udp.close()


def send(address, payload: bytes) -> None:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.sendto(payload, address)
    finally:
        sock.close()


class TestLogRecord:
    """Test record construction."""

    def test_from_datagram(self):
        record = LogRecord.from_datagram(b"<13>hello", ("10.0.0.5", 40000), received_at=1700000000)
        assert record.received_at == 1700000000
        assert record.source_address == "10.0.0.5"
        assert record.message == "<13>hello"

    def test_invalid_utf8_is_replaced(self):
        record = LogRecord.from_datagram(b"bad \xff byte", ("10.0.0.5", 1))
        assert record.message == "bad � byte"

    def test_immutable(self):
        record = make_record("x", 1000)
        with pytest.raises(AttributeError):
            record.payload = b"y"


class TestUdpListener:
    """Test receiving datagrams."""

    def test_receives_and_enqueues(self, listener):
        before = int(time.time())
        send(listener.address, b"hello")

        assert listener.poll_once() is True
        record = listener.queue.try_dequeue()
        assert record.message == "hello"
        assert record.source_address == "127.0.0.1"
        assert before <= record.received_at <= int(time.time())
        assert listener.received == 1

    def test_timeout_is_not_an_error(self, listener):
        start = time.monotonic()
        assert listener.poll_once() is False
        assert time.monotonic() - start >= 0.15
        assert listener.received == 0

    def test_drops_when_queue_full(self, caplog):
        queue = IngestQueue(1)
        queue.enqueue(make_record("already queued", 1000))
        udp = UdpListener(queue, host="127.0.0.1", port=0, poll_interval=0.5)
        udp.open()
        try:
            send(udp.address, b"overflow")
            with caplog.at_level(logging.WARNING):
                assert udp.poll_once() is True
        finally:
            udp.close()

        assert udp.dropped == 1
        assert len(queue) == 1
        assert queue.try_dequeue().message == "already queued"
        assert "dropping message" in caplog.text

    def test_large_datagram(self, listener):
        payload = b"x" * 60000
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, 131072)
        try:
            sock.sendto(payload, listener.address)
        finally:
            sock.close()

        assert listener.poll_once() is True
        assert listener.queue.try_dequeue().payload == payload

    def test_bind_failure_raises(self, listener):
        port = listener.address[1]
        other = UdpListener(IngestQueue(10), host="127.0.0.1", port=port)
        with pytest.raises(OSError):
            other.open()

    def test_receive_buffer_failure_is_soft(self, caplog):
        udp = UdpListener(IngestQueue(10), host="127.0.0.1", port=0, poll_interval=0.2)
        with patch.object(socket.socket, "setsockopt", side_effect=OSError("not permitted")):
            with caplog.at_level(logging.WARNING):
                udp.open()
        try:
            assert udp.address[1] > 0
            assert "receive buffer" in caplog.text
        finally:
            udp.close()

    def test_poll_before_open(self):
        udp = UdpListener(IngestQueue(10), host="127.0.0.1", port=0)
        with pytest.raises(RuntimeError):
            udp.poll_once()

    def test_run_until_stopped(self, listener):
        stop_event = threading.Event()
        thread = threading.Thread(target=listener.run, args=(stop_event,))
        thread.start()

        for i in range(3):
            send(listener.address, f"msg {i}".encode())

        deadline = time.monotonic() + 5
        while len(listener.queue) < 3 and time.monotonic() < deadline:
            time.sleep(0.01)

        stop_event.set()
        thread.join(2.0)

        assert not thread.is_alive()
        messages = [listener.queue.try_dequeue().message for _ in range(3)]
        assert messages == ["msg 0", "msg 1", "msg 2"]
