"""Logging setup for the API server, the worker and the CLI.

Every record carries the request id set by RequestIDMiddleware ("-" outside
a request), so lines from one registration or verification can be grouped.
"""

import logging
import sys

from pms.api.middleware import RequestContextFilter
from pms.config import settings

DEV_FORMAT = "%(levelname)-8s [%(request_id)s] %(name)s: %(message)s"
PROD_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"

# Libraries that log every connection at INFO
QUIET_LOGGERS = ("aiosmtplib", "saq")


def get_uvicorn_log_config() -> dict:
    """dictConfig for uvicorn, sharing the request id filter with app loggers."""
    if settings.is_development:
        default_fmt = "%(levelprefix)s [%(request_id)s] %(name)s: %(message)s"
        access_fmt = '%(levelprefix)s "%(request_line)s" %(status_code)s'
    else:
        default_fmt = "%(asctime)s %(levelprefix)s [%(request_id)s] %(name)s: %(message)s"
        access_fmt = '%(asctime)s %(levelprefix)s %(client_addr)s "%(request_line)s" %(status_code)s'

    stream = "ext://sys.stdout"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": {"()": "pms.api.middleware.RequestContextFilter"}},
        "formatters": {
            "default": {"()": "uvicorn.logging.DefaultFormatter", "fmt": default_fmt},
            "access": {"()": "uvicorn.logging.AccessFormatter", "fmt": access_fmt},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["request_context"],
                "stream": stream,
            },
            "access": {"class": "logging.StreamHandler", "formatter": "access", "stream": stream},
        },
        "loggers": {
            "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        },
        "root": {"handlers": ["default"], "level": settings.log_level},
    }


def setup_logging() -> None:
    """Configure the root logger for processes not started through uvicorn."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=DEV_FORMAT if settings.is_development else PROD_FORMAT,
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestContextFilter())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
