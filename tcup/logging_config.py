import contextvars
import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from typing import Optional

import yaml

from .config import LOG_FORMAT, LOG_LEVEL, LOGGING_CONFIG_FILE

# Context variable for trace ID
trace_id_var = contextvars.ContextVar('trace_id', default=None)

TEXT_FORMAT = "%(asctime)s tcup[%(process)d] %(levelname)s %(name)s: %(message)s"

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'exc_info', 'exc_text',
    'stack_info', 'taskName', 'message', 'asctime', 'component',
}


def get_trace_id() -> Optional[str]:
    """Get the current trace ID from context"""
    return trace_id_var.get()


class JsonFormatter(logging.Formatter):
    """JSON formatter with structured fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "pid": record.process,
            "msg": record.getMessage(),
            "trace_id": get_trace_id(),
            "component": getattr(record, 'component', 'relay'),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def _default_config(log_format: str, log_level: str) -> dict:
    handlers = ["console"]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "text": {
                "format": TEXT_FORMAT,
                "datefmt": "%Y/%m/%d %H:%M:%S"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": log_format,
                "stream": "ext://sys.stdout"
            }
        },
        "loggers": {
            "tcup": {"level": log_level, "handlers": handlers, "propagate": False},
            "uvicorn": {"level": log_level, "handlers": handlers, "propagate": False},
            "uvicorn.error": {"level": log_level, "handlers": [], "propagate": True},
            "uvicorn.access": {"level": "WARNING", "handlers": handlers, "propagate": False},
        },
        "root": {
            "level": log_level,
            "handlers": handlers
        }
    }


def setup_logging(log_format: str = None, log_level: str = None, config_file: str = None) -> dict:
    """Configure logging from a YAML file when given, otherwise from the built-in dict"""
    log_format = log_format or LOG_FORMAT
    log_level = (log_level or LOG_LEVEL).upper()
    config_file = config_file if config_file is not None else LOGGING_CONFIG_FILE

    if log_format not in ("json", "text"):
        log_format = "text"

    config = None
    if config_file and os.path.exists(config_file):
        try:
            with open(config_file, 'r') as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Could not load {config_file}: {e}")

    if not config:
        config = _default_config(log_format, log_level)

    logging.config.dictConfig(config)
    return config
