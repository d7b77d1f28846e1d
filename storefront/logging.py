"""
structlog setup for applications embedding the storefront core
"""
import logging
import sys

import structlog


SHARED_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    json_output: bool = True,
) -> structlog.BoundLogger:
    """
    Route structlog through stdlib logging on stdout.

    Components bind their own `component=` context; this only sets the
    processor chain, the level and the `service` field.

    Args:
        service_name: Value of the `service` field on the returned logger
        log_level: DEBUG, INFO, WARNING or ERROR
        json_output: JSON lines when True, coloured console output otherwise
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=SHARED_PROCESSORS + [renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    # requests logs every pooled connection through urllib3
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))

    return structlog.get_logger().bind(service=service_name)
