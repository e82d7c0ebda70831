# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Compression backends for retired database files.

Both backends write the .xz container format:
- lzma: linked liblzma routine (default)
- xz: external ``xz`` process, for hosts that prefer the system tool
"""

import logging
import lzma
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

# Fast/low setting, like ``xz -1``
DEFAULT_PRESET = 1

CHUNK_SIZE = 1024 * 1024


class CompressionError(RuntimeError):
    """Raised when a file could not be compressed."""


class LzmaCompressor:
    """Compress with the standard library lzma module."""

    name = "lzma"

    def __init__(self, preset: int = DEFAULT_PRESET):
        self.preset = preset

    def compress(self, source: Path, target: Path) -> None:
        """
        Compress ``source`` into ``target``.

        Raises:
            CompressionError: On any read, write or encoder failure
        """
        try:
            with open(source, "rb") as src, lzma.open(target, "wb", preset=self.preset) as dst:
                shutil.copyfileobj(src, dst, CHUNK_SIZE)
        except (OSError, lzma.LZMAError) as e:
            raise CompressionError(f"lzma failed for {source}: {e}") from e


class XzCommandCompressor:
    """Compress by running the external ``xz`` tool."""

    name = "xz"

    def __init__(self, preset: int = DEFAULT_PRESET, binary: str = "xz", timeout: float = 3600):
        self.preset = preset
        self.binary = binary
        self.timeout = timeout

    def compress(self, source: Path, target: Path) -> None:
        """
        Run ``xz -<preset> --keep --stdout source > target``.

        Raises:
            CompressionError: If the tool is missing, times out or exits non-zero
        """
        cmd = [self.binary, f"-{self.preset}", "--keep", "--stdout", str(source)]
        try:
            with open(target, "wb") as out:
                result = subprocess.run(
                    cmd,
                    stdout=out,
                    stderr=subprocess.PIPE,
                    timeout=self.timeout,
                )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CompressionError(f"{self.binary} failed for {source}: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise CompressionError(
                f"{self.binary} exited with code {result.returncode} for {source}: {stderr}"
            )


COMPRESSORS = {
    LzmaCompressor.name: LzmaCompressor,
    XzCommandCompressor.name: XzCommandCompressor,
}


def get_compressor(name: str, preset: int = DEFAULT_PRESET):
    """
    Create a compressor by name.

    Args:
        name: Backend name ("lzma" or "xz")
        preset: Compression preset 0-9

    Raises:
        ValueError: If the name is not recognized
    """
    if name not in COMPRESSORS:
        raise ValueError(
            f"Unknown compressor: {name}. "
            f"Valid compressors: {', '.join(COMPRESSORS.keys())}"
        )
    return COMPRESSORS[name](preset=preset)


def decompressed_size(path: Path) -> int:
    """
    Decode an .xz file fully and count the bytes.

    Raises:
        CompressionError: If the file is truncated or corrupt
    """
    total = 0
    try:
        with lzma.open(path, "rb") as f:
            while True:
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
    except (OSError, EOFError, lzma.LZMAError) as e:
        raise CompressionError(f"Cannot verify {path}: {e}") from e
    return total
