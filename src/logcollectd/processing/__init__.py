# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Processing layer for logcollectd.
Drains the ingest queue and writes to hourly SQLite files.
"""
