"""structlog setup shared by the webhook API, the queue consumers and the poller.

All output goes through one stdlib root handler, so boto3, httpx and stripe
lines come out in the same shape as ours. HTTP requests carry the
asgi-correlation-id request id; queue messages carry the ``provider`` /
``payload_id`` / ``message_id`` contextvars bound by the processors.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

from supporter360.core.config import Settings

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "botocore", "boto3", "urllib3", "stripe")


def add_correlation_id(logger, method, event_dict):
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def configure_logging(settings: Settings) -> None:
    """Console output in debug, JSON everywhere else.

    Must run before the first logger is used: structlog caches the
    processor chain on first use.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["default"], "level": "DEBUG" if settings.debug else settings.log_level},
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
    })

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
