"""Logging setup with redaction of signed URLs and credentials.

Display URLs issued by object storage grant read access for as long as they
live, so they must never reach log sinks verbatim.
"""

import logging
import re
from typing import Optional

_SIGNED_QUERY = re.compile(r"(https?://[^\s?\"']+)\?[^\s\"']*(token|signature|sig|X-Amz-|X-Goog-)[^\s\"']*", re.IGNORECASE)
_BEARER = re.compile(r"(Bearer\s+)[A-Za-z0-9\-_.=]+", re.IGNORECASE)
_SENSITIVE_KEYS = ("token", "secret", "password", "api_key", "apikey", "authorization")


def redact(value: str) -> str:
    """Strip signed query strings and bearer tokens from a string."""
    value = _SIGNED_QUERY.sub(r"\1?<redacted>", value)
    return _BEARER.sub(r"\1<redacted>", value)


class RedactingFilter(logging.Filter):
    """Filter that masks credentials in the message, args and ``extra`` fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(redact(a) if isinstance(a, str) else a for a in record.args)
        for key, value in list(record.__dict__.items()):
            if any(marker in key.lower() for marker in _SENSITIVE_KEYS):
                record.__dict__[key] = "<redacted>"
            elif isinstance(value, str) and key not in ("msg", "name", "levelname", "pathname", "filename", "module", "funcName"):
                record.__dict__[key] = redact(value)
        return True


def configure_logging(level: int = logging.INFO, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """Attach a redacting handler to the package logger."""
    logger = logging.getLogger("onboarding")
    handler = handler or logging.StreamHandler()
    handler.addFilter(RedactingFilter())
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
