"""Structured logging configuration."""

import logging
import sys
from pythonjsonlogger import jsonlogger
from partner_gateway.infra.config import config
from partner_gateway.infra.correlation import get_current_correlation_id


class CorrelationIdFilter(logging.Filter):
    """Attach the current request's correlation ID to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_current_correlation_id()
        return True


def setup_logging(level: str = config.LOG_LEVEL):
    """Setup structured JSON logging."""
    # Create logger
    logger = logging.getLogger("partner_gateway")
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers = []

    # Create JSON formatter
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(correlation_id)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(CorrelationIdFilter())
    logger.addHandler(console_handler)

    # Set levels for third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger


# Initialize logging
app_logger = setup_logging()
