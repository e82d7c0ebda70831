# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Retention compactor for hourly database files.

Periodically scans the database directory and replaces every closed
``YYYYMMDDHH.sqlite3`` file older than the retention age with
``YYYYMMDDHH.sqlite3.xz``. Runs on its own cadence, independent of the
writer.
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

from ..processing.database.partition import (
    COMPRESSED_SUFFIX,
    bucket_start,
    parse_bucket_filename,
)
from .compression import (
    CompressionError,
    LzmaCompressor,
    decompressed_size,
)

logger = logging.getLogger(__name__)

DEFAULT_COMPRESS_AGE = 7 * 86400
DEFAULT_INTERVAL = 3600
DEFAULT_GRACE = 60

BUCKET_SECONDS = 3600

TMP_SUFFIX = ".tmp"


class RetentionCompactor:
    """
    Compresses database files past the retention age.

    A file is only removed after its compressed copy has been fully decoded
    and matched against the original size. The writer's active bucket is
    never touched, whatever its age, and neither is a bucket whose hour
    ended less than ``grace`` seconds ago, while late records may still
    reopen it.
    """

    def __init__(
        self,
        db_dir: Path,
        compress_age: int = DEFAULT_COMPRESS_AGE,
        interval: float = DEFAULT_INTERVAL,
        active_bucket: Optional[Callable[[], Optional[str]]] = None,
        compressor=None,
        clock: Callable[[], float] = time.time,
        grace: float = DEFAULT_GRACE,
    ):
        """
        Initialize compactor.

        Args:
            db_dir: Directory holding the hourly database files
            compress_age: Age in seconds after which a file is compressed
            interval: Seconds between sweeps
            active_bucket: Returns the writer's current bucket key
            compressor: Compression backend (defaults to LzmaCompressor)
            clock: Wall-clock source (epoch seconds)
            grace: Seconds after the end of an hour before its file may be compressed
        """
        self.db_dir = Path(db_dir)
        self.compress_age = compress_age
        self.interval = interval
        self.active_bucket = active_bucket or (lambda: None)
        self.compressor = compressor or LzmaCompressor()
        self.clock = clock
        self.grace = grace

        self.compressed = 0
        self.failed = 0

    def find_candidates(self) -> List[Path]:
        """
        List database files old enough to compress.

        Returns:
            Paths sorted by name (oldest bucket first)
        """
        now = self.clock()
        active = self.active_bucket()
        candidates = []

        with os.scandir(self.db_dir) as entries:
            for entry in entries:
                key = parse_bucket_filename(entry.name)
                if key is None or not entry.is_file():
                    continue
                if key == active:
                    continue
                try:
                    started = bucket_start(key)
                except ValueError:
                    logger.debug(f"Skipping {entry.name}: not a valid hour bucket")
                    continue
                if now - started < BUCKET_SECONDS + self.grace:
                    continue
                if now - started >= self.compress_age:
                    candidates.append(Path(entry.path))

        return sorted(candidates)

    def compress_file(self, path: Path) -> Path:
        """
        Compress one file and remove the plaintext.

        Args:
            path: Database file to compress

        Returns:
            Path of the compressed file

        Raises:
            CompressionError: If the archive already exists, or compression or
                verification fails; the original file is left in place
        """
        target = path.with_name(path.name + COMPRESSED_SUFFIX)
        tmp = path.with_name(target.name + TMP_SUFFIX)

        if target.exists():
            raise CompressionError(f"Archive {target} already exists, not overwriting it with {path}")

        try:
            expected = path.stat().st_size
            self.compressor.compress(path, tmp)
            actual = decompressed_size(tmp)
            if actual != expected:
                raise CompressionError(
                    f"Verification failed for {path}: {actual} bytes decoded, expected {expected}"
                )
            with open(tmp, "rb") as f:
                os.fsync(f.fileno())
            os.replace(tmp, target)
        except OSError as e:
            raise CompressionError(f"Cannot compress {path}: {e}") from e
        finally:
            if tmp.exists():
                tmp.unlink()

        try:
            path.unlink()
        except OSError as e:
            raise CompressionError(f"Compressed {path} but cannot remove it: {e}") from e
        return target

    def sweep(self) -> List[Path]:
        """
        Run one compaction pass.

        Returns:
            Paths of the files compressed in this pass
        """
        try:
            candidates = self.find_candidates()
        except OSError as e:
            logger.error(f"Cannot scan database directory {self.db_dir}: {e}")
            return []

        compressed = []
        for path in candidates:
            # The writer may have rotated onto this bucket since the scan
            if parse_bucket_filename(path.name) == self.active_bucket():
                continue
            logger.info(f"Compressing {path}")
            try:
                target = self.compress_file(path)
            except CompressionError as e:
                logger.error(f"Compression failed, keeping original: {e}")
                self.failed += 1
                continue
            compressed.append(target)
            self.compressed += 1

        if compressed:
            logger.info(f"Compressed {len(compressed)} database files")
        return compressed

    def run(self, stop_event: threading.Event) -> None:
        """
        Sweep now and then every ``interval`` seconds until stopped.
        """
        logger.info(
            f"Retention compactor started (age={self.compress_age}s, interval={self.interval}s, "
            f"compressor={self.compressor.name})"
        )

        while not stop_event.is_set():
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Error in compaction sweep: {e}", exc_info=True)

            stop_event.wait(self.interval)

        logger.info("Retention compactor stopped")
