# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Hour-bucket naming for database files.

Each database file holds the records received during one local-time hour and
is named after that hour: ``YYYYMMDDHH.sqlite3``.
"""

import re
import time
from typing import Optional

BUCKET_FORMAT = "%Y%m%d%H"
DB_SUFFIX = ".sqlite3"
COMPRESSED_SUFFIX = ".xz"

_BUCKET_FILE_RE = re.compile(r"^(\d{10})\.sqlite3$")


def bucket_key(timestamp: float) -> str:
    """
    Get the bucket key for a timestamp.

    Args:
        timestamp: Seconds since the epoch

    Returns:
        ``YYYYMMDDHH`` in local time
    """
    return time.strftime(BUCKET_FORMAT, time.localtime(timestamp))


def bucket_filename(key: str) -> str:
    """Database file name for a bucket key."""
    return f"{key}{DB_SUFFIX}"


def parse_bucket_filename(name: str) -> Optional[str]:
    """
    Extract the bucket key from a database file name.

    Only exact ``<10 digits>.sqlite3`` names match; compressed files,
    journals and anything else return None.
    """
    match = _BUCKET_FILE_RE.match(name)
    if not match:
        return None
    return match.group(1)


def bucket_start(key: str) -> float:
    """
    Get the epoch time at which a bucket hour starts.

    Raises:
        ValueError: If the key is not a valid ``YYYYMMDDHH`` value
    """
    parsed = time.strptime(key, BUCKET_FORMAT)
    return time.mktime(parsed)
