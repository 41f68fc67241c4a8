# lms_export/logging_setup.py
from __future__ import annotations

import logging
import logging.config

LOGGER_NAME = "lms_export"


class DefaultContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "deployment"):
            record.deployment = "-"
        if not hasattr(record, "step"):
            record.step = "-"
        return True


def setup_logging(verbosity: int = 1) -> None:
    """
    Configure a consistent logger for the project.
    - WARNING at 0, INFO at 1, DEBUG when verbosity >= 2
    - Always prints deployment and step so cron logs are grep-able.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    fmt = (
        "%(asctime)s %(levelname)s "
        "lms=%(deployment)s step=%(step)s "
        "%(message)s"
    )

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"std": {"format": fmt}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "std",
                "level": level,
                "filters": ["default_context"]
            }
        },
        "loggers": {
            LOGGER_NAME: {"handlers": ["console"], "level": level, "propagate": False}
        },
        "filters": {
            "default_context": {
                "()": "logging_setup.DefaultContextFilter"
            }
        },
    })


class _Adapter(logging.LoggerAdapter):
    """LoggerAdapter that ensures deployment and step keys exist, and avoids LogRecord collisions."""

    _RESERVED = {
        "name","msg","args","levelname","levelno","pathname","filename","module","lineno","funcName",
        "created","asctime","msecs","relativeCreated","thread","threadName","processName","process",
        "exc_info","exc_text","stack_info","stacklevel","message","taskName"
    }

    def process(self, msg: str, kwargs):
        extra = dict(self.extra)
        user_extra = kwargs.get("extra") or {}
        for k, v in user_extra.items():
            key = k if k not in self._RESERVED else f"meta_{k}"
            if key not in extra:  # don't clobber adapter defaults
                extra[key] = v
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(*, step: str, deployment: str | None = None) -> logging.LoggerAdapter:
    """
    Create a logger bound to step + deployment.
    Usage:
        log = get_logger(step="tables", deployment="campus.example.com")
        log.info("exported table", extra={"table": "auth_user"})
    """
    base = logging.getLogger(LOGGER_NAME)
    return _Adapter(base, extra={"step": step, "deployment": deployment or "-"})
