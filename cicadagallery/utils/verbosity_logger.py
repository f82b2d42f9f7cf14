"""
Flexible logging utility for CicadaGallery.

Log levels are selected with a pipe-separated list in the `logging.level`
config key, e.g. "INFO|ERROR" emits info and error messages only. Values that
come from users or from the issuance service (order ids, e-mail addresses,
service messages) must pass through sanitize_log() before being logged.
"""

import logging
import re
from typing import Iterable, Set

from cicadagallery.config.config import get_log_format, get_log_levels
from cicadagallery.utils.logging_formatter import UTCTimestampFormatter

# Matches control characters that can cause log injection (CWE-117)
_CONTROL_CHAR_RE = re.compile(r"[\r\n]")

DEFAULT_LEVELS = frozenset(
    {logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL}
)


def sanitize_log(value) -> str:
    """Strip CR/LF from a value before it is logged (CWE-117)."""
    return _CONTROL_CHAR_RE.sub("", str(value))


def parse_levels(level_config: str) -> Set[int]:
    """Map "INFO|ERROR"-style names to logging constants; unknown names are skipped."""
    names: Iterable[str] = (part.strip().upper() for part in level_config.split("|"))
    return {
        level
        for level in (logging.getLevelName(name) for name in names if name)
        if isinstance(level, int)
    }


class FlexibleLogger:
    """
    Wraps a stdlib logger and drops every record whose level is not in the
    configured set. Unlike a threshold, the set may skip levels: "DEBUG|ERROR"
    shows debug output and errors but no info or warnings.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.name = name
        self.enabled_levels = self._parse_enabled_levels()

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(UTCTimestampFormatter(get_log_format()))
            self.logger.addHandler(handler)
            # Filtering happens in _log
            self.logger.setLevel(logging.DEBUG)

    def _parse_enabled_levels(self) -> Set[int]:
        try:
            return parse_levels(get_log_levels()) or set(DEFAULT_LEVELS)
        except (KeyError, AttributeError, TypeError):
            return set(DEFAULT_LEVELS)

    def is_enabled_for(self, level: int) -> bool:
        return level in self.enabled_levels

    def _log(self, level: int, msg: str, *args, **kwargs):
        if self.is_enabled_for(level):
            self.logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)


def get_logger(name: str) -> FlexibleLogger:
    """Get a flexible logger instance with granular level control."""
    return FlexibleLogger(name)
