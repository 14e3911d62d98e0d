"""
Structured JSON logging on the root logger.
"""
import logging
import sys
import json
from datetime import datetime

from ordersync.config import config

# Chatty client libraries only log warnings and above
QUIET_LOGGERS = ("aiohttp.access", "asyncio", "httpx", "urllib3")


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, tagged with service and environment."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "service": "ordersync",
            "environment": config.ENVIRONMENT,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            log_data.update(extra)

        return json.dumps(log_data, default=str)


def setup_logger() -> logging.Logger:
    """Install the JSON formatter on the root logger at LOG_LEVEL."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())

    root.handlers.clear()
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


# Global logger instance
logger = setup_logger()
