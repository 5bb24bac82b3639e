import logging
import logging.config
import os
import json
from datetime import datetime, timezone
from typing import Optional
import contextvars

import yaml

# Context variable for trace ID
trace_id_var = contextvars.ContextVar('trace_id', default=None)

_STANDARD_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message', 'component', 'client_ip',
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
            "msg": record.getMessage(),
            "trace_id": get_trace_id(),
            "client_ip": getattr(record, 'client_ip', None),
            "component": getattr(record, 'component', 'geogate'),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def setup_logging():
    """Setup logging configuration from YAML file or environment"""

    log_format = os.getenv("LOG_FORMAT", "json")
    log_level = os.getenv("LOG_LEVEL", "INFO")
    config_file = os.getenv("LOGGING_CONFIG", "LOGGING.yaml")

    # Try to load YAML config
    config = None
    if os.path.exists(config_file):
        try:
            with open(config_file, 'r') as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            print(f"Warning: Could not load {config_file}: {e}")

    # Fallback to basic config if YAML not available
    if not config:
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JsonFormatter},
                "text": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S"
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
                "geogate": {
                    "level": log_level,
                    "handlers": ["console"],
                    "propagate": False
                },
                "uvicorn": {
                    "level": log_level,
                    "handlers": ["console"],
                    "propagate": False
                }
            },
            "root": {
                "level": log_level,
                "handlers": ["console"]
            }
        }

    # Apply environment overrides
    if log_format == "text":
        for handler in config.get("handlers", {}).values():
            if "formatter" in handler:
                handler["formatter"] = "text"

    for logger in config.get("loggers", {}).values():
        logger["level"] = log_level

    logging.config.dictConfig(config)
    return config
