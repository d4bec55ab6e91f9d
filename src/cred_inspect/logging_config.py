"""JSON line logging for the cred-inspect command line."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from . import config


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in ("generation", "format"):
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(level: Optional[str] = None) -> None:
    """Install the JSON formatter on the root logger.

    Args:
        level: Level name overriding CRED_INSPECT_LOG_LEVEL
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    log_level = (level or config.LOG_LEVEL).upper()
    root.setLevel(getattr(logging, log_level, logging.WARNING))
    root.handlers = [handler]
