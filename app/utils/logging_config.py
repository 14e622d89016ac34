import logging
import logging.config
import os
from pathlib import Path

# Named loggers emitted by Meetline; module loggers under app.* inherit from "app".
APP_LOGGERS = ("app", "audit", "auth_module", "database", "meetline.summarization")


def setup_logging():
    """
    Route Meetline's loggers to the console, logs/app.log and logs/error.log.

    LOG_DIR, LOG_LEVEL, LOG_MAX_BYTES and LOG_BACKUP_COUNT tune the output.
    Anything else that reaches the root logger only surfaces at WARNING.
    """
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    rotation = {
        "maxBytes": int(os.getenv("LOG_MAX_BYTES", str(5 * 1024 * 1024))),
        "backupCount": int(os.getenv("LOG_BACKUP_COUNT", "3")),
        "encoding": "utf8",
    }

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "level": level,
        },
        "file_app": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "default",
            "filename": str(log_dir / "app.log"),
            "level": level,
            **rotation,
        },
        "file_error": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "default",
            "filename": str(log_dir / "error.log"),
            "level": "ERROR",
            **rotation,
        },
    }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                },
            },
            "handlers": handlers,
            "root": {"handlers": ["console", "file_error"], "level": "WARNING"},
            "loggers": {
                name: {"handlers": list(handlers), "level": level, "propagate": False}
                for name in APP_LOGGERS
            },
        }
    )
    logging.getLogger("app").info(f"Logging configured in {log_dir}")
