"""Structured logging setup for the feature flag engine."""

import json
import logging
import sys
from typing import Optional, Union

from flag_engine.core.config import get_settings


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        # Structured fields passed through ``extra=`` by the engine
        for attr in [
            "flag_key",
            "source",
            "user_id",
            "plugin_id",
            "environment",
            "latency_ms",
            "event_type",
            "error_code",
        ]:
            if hasattr(record, attr):
                data[attr] = getattr(record, attr)
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False, default=str)


def setup_logging(level: Optional[Union[int, str]] = None) -> None:
    root = logging.getLogger()
    root.setLevel(level if level is not None else get_settings().LOG_LEVEL.upper())
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.handlers = [handler]
