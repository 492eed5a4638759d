import json
import logging
import logging.config

from procureflow.config import settings

_PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None) -> None:
    global _configured
    if _configured:
        return
    log_level = (level or settings.log_level or "INFO").upper()
    if settings.log_json:
        formatter = {"()": JsonFormatter}
    else:
        formatter = {"format": _PLAIN_FORMAT}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": formatter},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"level": log_level, "handlers": ["console"]},
            "loggers": {
                "sqlalchemy.engine": {"level": "WARNING"},
                "celery": {"level": "INFO"},
            },
        }
    )
    _configured = True
    logging.getLogger(__name__).debug("Logging configured (level=%s)", log_level)
