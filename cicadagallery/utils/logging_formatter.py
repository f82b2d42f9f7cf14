"""
Logging formatter that renders record timestamps in UTC.
"""

import logging
from datetime import datetime, timezone


class UTCTimestampFormatter(logging.Formatter):
    """Formatter whose %(asctime)s is an ISO-8601 UTC timestamp."""

    def formatTime(self, record, datefmt=None):
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            return timestamp.strftime(datefmt)
        return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
