# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for hour-bucket file naming.
"""

import pytest

from logcollectd.processing.database.partition import (
    bucket_filename,
    bucket_key,
    bucket_start,
    parse_bucket_filename,
)
from conftest import local_time


class TestBucketKey:
    """Test bucket key computation."""

    def test_key_is_local_hour(self):
        assert bucket_key(local_time(2025, 6, 14, 10, 30, 15)) == "2025061410"

    def test_same_hour_same_key(self):
        assert bucket_key(local_time(2025, 6, 14, 10, 0, 0)) == bucket_key(local_time(2025, 6, 14, 10, 59, 59))

    def test_next_hour_different_key(self):
        assert bucket_key(local_time(2025, 6, 14, 10, 59, 59)) != bucket_key(local_time(2025, 6, 14, 11, 0, 0))

    def test_filename(self):
        assert bucket_filename("2025061410") == "2025061410.sqlite3"


class TestParseBucketFilename:
    """Test database file name matching."""

    def test_matches_bucket_file(self):
        assert parse_bucket_filename("2020010100.sqlite3") == "2020010100"

    @pytest.mark.parametrize("name", [
        "2020010100.sqlite3.xz",
        "2020010100.sqlite3-journal",
        "2020010100.sqlite3.xz.tmp",
        "20200101.sqlite3",
        "202001010000.sqlite3",
        "abcdefghij.sqlite3",
        "2020010100.db",
        "notes.txt",
    ])
    def test_rejects_other_names(self, name):
        assert parse_bucket_filename(name) is None


class TestBucketStart:
    """Test bucket start time."""

    def test_start_of_hour(self):
        assert bucket_start("2025061410") == local_time(2025, 6, 14, 10)

    def test_roundtrip_with_key(self):
        start = bucket_start("2025061410")
        assert bucket_key(start) == "2025061410"

    def test_invalid_key(self):
        with pytest.raises(ValueError):
            bucket_start("2025139999")
