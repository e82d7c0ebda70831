# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Retention: compresses database files past the retention age.
"""

from .compactor import RetentionCompactor
from .compression import CompressionError, get_compressor

__all__ = ["RetentionCompactor", "CompressionError", "get_compressor"]
