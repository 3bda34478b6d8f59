import json
import logging
from logging.config import dictConfig

# Keys every JSON line carries; ``extra`` payloads may not overwrite them.
RESERVED_KEYS = ("ts", "level", "logger", "message")


def setup_logging(level: str = "INFO") -> None:
    """Route gateway logs to stdout as JSON lines and script output as text."""
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JsonFormatter},
                "script": {
                    "format": "%(asctime)s %(levelname)s %(message)s",
                    "datefmt": "%H:%M:%S",
                },
            },
            "handlers": {
                "stdout_json": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "json",
                },
                "stderr_script": {
                    "class": "logging.StreamHandler",
                    "formatter": "script",
                },
            },
            "root": {"level": level, "handlers": ["stdout_json"]},
            "loggers": {
                "blobgate.scripts": {
                    "handlers": ["stderr_script"],
                    "level": level,
                    "propagate": False,
                },
                # botocore debug output leaks request signatures
                "botocore": {"level": "WARNING"},
                "urllib3": {"level": "WARNING"},
            },
        }
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                if key not in RESERVED_KEYS:
                    payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
