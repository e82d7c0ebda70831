# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Hour-partitioned SQLite storage.
"""

from .writer import DatabaseOpenError, HourlyLogWriter

__all__ = ["DatabaseOpenError", "HourlyLogWriter"]
