# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Configuration management for logcollectd.

Values come from, in increasing priority: defaults, an optional YAML file,
LOGCOLLECTD_* environment variables, and command line flags.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

PRIVILEGED_PORT = 514
UNPRIVILEGED_PORT = 5140

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value: Any) -> int:
    """
    Parse a duration into seconds.

    Accepts plain seconds (``604800``) or a number with a unit suffix
    (``45s``, ``30m``, ``12h``, ``7d``, ``1w``).

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        return value
    match = _DURATION_RE.match(str(value).lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    number, unit = match.groups()
    return int(number) * _DURATION_UNITS[unit]


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: Any) -> bool:
    """
    Parse a YAML or string flag.

    Raises:
        ValueError: If the value is not a recognised boolean
    """
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean: {value!r}")


@dataclass
class Config:
    """Collector configuration container."""

    # Storage settings
    db_dir: Path = Path("./db")

    # Listener settings
    host: str = "0.0.0.0"
    port: Optional[int] = None  # None: pick by privilege
    recv_buffer_size: int = 262144
    poll_interval: float = 1.0  # seconds

    # Queue settings
    queue_capacity: int = 100000

    # Writer settings
    idle_timeout: float = 0.1  # seconds
    drain_on_shutdown: bool = True

    # Retention settings
    compress_age: int = 7 * 86400  # seconds
    compress_interval: float = 3600  # seconds
    compressor: str = "lzma"  # lzma, xz
    compression_preset: int = 1

    # Logging settings
    verbose: bool = False

    # Config file path
    config_path: Optional[Path] = None

    def __post_init__(self):
        """Load file and environment overrides."""
        self.db_dir = Path(self.db_dir)
        self._errors: List[str] = []

        if self.config_path is not None:
            self.config_path = Path(self.config_path).expanduser()
            if self.config_path.exists():
                self.load_from_file()
            else:
                logger.warning(f"Config file not found: {self.config_path}")

        self.load_from_env()

    def load_from_file(self):
        """Load configuration from YAML file."""
        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config file {self.config_path}: {e}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {self.config_path}: top level must be a mapping")
            return

        # Storage settings
        storage = self._section(data, "storage")
        if "db_dir" in storage:
            self.db_dir = Path(str(storage["db_dir"])).expanduser()

        # Listener settings
        listener = self._section(data, "listener")
        self.host = self._coerce(listener, "listener.host", str, self.host)
        self.port = self._coerce(listener, "listener.port", int, self.port)
        self.recv_buffer_size = self._coerce(
            listener, "listener.recv_buffer_size", int, self.recv_buffer_size
        )
        self.poll_interval = self._coerce(listener, "listener.poll_interval", float, self.poll_interval)

        # Queue settings
        queue = self._section(data, "queue")
        self.queue_capacity = self._coerce(queue, "queue.capacity", int, self.queue_capacity)

        # Writer settings
        writer = self._section(data, "writer")
        self.idle_timeout = self._coerce(writer, "writer.idle_timeout", float, self.idle_timeout)
        self.drain_on_shutdown = self._coerce(
            writer, "writer.drain_on_shutdown", parse_bool, self.drain_on_shutdown
        )

        # Retention settings
        retention = self._section(data, "retention")
        self.compress_age = self._coerce(retention, "retention.compress_age", parse_duration, self.compress_age)
        self.compress_interval = self._coerce(
            retention, "retention.interval", parse_duration, self.compress_interval
        )
        self.compressor = self._coerce(retention, "retention.compressor", str, self.compressor)
        self.compression_preset = self._coerce(retention, "retention.preset", int, self.compression_preset)

        # Logging settings
        log = self._section(data, "logging")
        self.verbose = self._coerce(log, "logging.verbose", parse_bool, self.verbose)

    def load_from_env(self):
        """Load configuration from environment variables."""
        if env_dir := os.environ.get("LOGCOLLECTD_DB_DIR"):
            self.db_dir = Path(env_dir).expanduser()

        if env_host := os.environ.get("LOGCOLLECTD_HOST"):
            self.host = env_host

        if env_port := os.environ.get("LOGCOLLECTD_PORT"):
            try:
                self.port = int(env_port)
            except ValueError:
                logger.warning(f"Ignoring invalid LOGCOLLECTD_PORT: {env_port!r}")

        if env_age := os.environ.get("LOGCOLLECTD_COMPRESS_AGE"):
            try:
                self.compress_age = parse_duration(env_age)
            except ValueError:
                logger.warning(f"Ignoring invalid LOGCOLLECTD_COMPRESS_AGE: {env_age!r}")

        if os.environ.get("LOGCOLLECTD_VERBOSE"):
            self.verbose = True

    def resolve_port(self) -> int:
        """
        Get the port to listen on.

        Uses the configured port, else the syslog port when running as root
        and an unprivileged port otherwise.
        """
        if self.port is not None:
            return self.port
        if hasattr(os, "geteuid") and os.geteuid() == 0:
            return PRIVILEGED_PORT
        return UNPRIVILEGED_PORT

    def validate(self) -> List[str]:
        """
        Validate configuration values.

        Returns:
            List of error messages (empty when valid)
        """
        errors = list(self._errors)

        if not self.db_dir.is_dir():
            errors.append(f"database directory {self.db_dir} does not exist")

        if self.port is not None and not 0 <= self.port <= 65535:
            errors.append("port must be between 0 and 65535")

        if self.queue_capacity <= 0:
            errors.append("queue capacity must be positive")

        if self.compress_age < 0:
            errors.append("compress_age must be non-negative")

        if self.compress_interval <= 0:
            errors.append("compress_interval must be positive")

        if self.compressor not in ("lzma", "xz"):
            errors.append("compressor must be 'lzma' or 'xz'")

        if not 0 <= self.compression_preset <= 9:
            errors.append("compression preset must be between 0 and 9")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            k: (str(v) if isinstance(v, Path) else v)
            for k, v in self.__dict__.items()
            if not k.startswith("_") and k != "config_path"
        }

    @staticmethod
    def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = data.get(name, {})
        return section if isinstance(section, dict) else {}

    def _coerce(self, section: Dict[str, Any], name: str, cast, current):
        """Convert one config file value, recording an error and keeping ``current`` on failure."""
        key = name.rsplit(".", 1)[-1]
        if key not in section:
            return current
        value = section[key]
        if isinstance(value, bool) and cast is not parse_bool:
            self._errors.append(f"{name} in {self.config_path}: invalid value {value!r}")
            return current
        try:
            return cast(value)
        except (TypeError, ValueError):
            self._errors.append(f"{name} in {self.config_path}: invalid value {value!r}")
            return current
