"""Logging setup: JSON lines in production, plain text for local runs."""

import logging
from datetime import datetime, timezone

import orjson

# extra= fields copied into the JSON record when present
_EXTRA_FIELDS = ("paste_url", "username", "error_code", "client")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(log).decode()


def setup_logging(level: str = "INFO", fmt: str = "json"):
    """Configure the root logger once; repeated calls replace our handler."""
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_pastemd", False):
            root.removeHandler(h)

    handler = logging.StreamHandler()
    handler._pastemd = True
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
