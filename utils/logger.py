from __future__ import annotations

import logging
import logging.config
from pathlib import Path

LOG_FILE_NAME = "email_automation.log"

# Client libraries that log every HTTP round-trip at INFO.
NOISY_LOGGERS = ("googleapiclient.discovery_cache", "googleapiclient.discovery", "httpx", "openai")


def configure_logging(log_dir: Path, level: str = "INFO") -> Path:
    """Configure a rotating file log plus console output.

    Returns the path of the log file so callers can mention it to the user.
    """

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILE_NAME

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
            "console": {
                "format": "%(asctime)s | %(levelname)s | %(message)s",
                "datefmt": "%H:%M:%S",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "standard",
                "filename": str(log_path),
                "maxBytes": 1_000_000,
                "backupCount": 3,
                "encoding": "utf-8",
            },
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "console",
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        "root": {
            "handlers": ["file", "stdout"],
            "level": level.upper(),
        },
    }

    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured at %s, writing to %s", level, log_path)
    return log_path
