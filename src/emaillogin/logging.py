import logging
import sys

import structlog

from emaillogin.config import Config

# Driver loggers that are too chatty at INFO
QUIET_LOGGERS = ("pymongo", "pymongo.topology", "pymongo.connection", "pymongo.command")


def setup_logging(config: Config) -> None:
    """Route structlog through stdlib logging on stderr.

    Debug mode logs at DEBUG with colored console lines. Otherwise records are
    JSON, unless log_json is off (plain lines suit cron mail better).
    """
    log_level = logging.DEBUG if config.debug else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if config.debug or not config.log_json:
        processors.append(structlog.dev.ConsoleRenderer(colors=config.debug))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
