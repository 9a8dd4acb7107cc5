"""
Logging configuration
"""

import logging
import re
import sys
from typing import Optional
from core.config import settings

# "Bearer <token>" and "X-API-Key: <key>" style secrets
SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[^\s'\",]+", re.IGNORECASE),
    re.compile(r"((?:api[_-]?key|token)['\"]?\s*[:=]\s*['\"]?)[^\s'\",]+", re.IGNORECASE),
)


def redact(message: str) -> str:
    for pattern in SECRET_PATTERNS:
        message = pattern.sub(r"\1****", message)
    return message


class RedactSecretsFilter(logging.Filter):
    """Masks partner credentials that end up in formatted log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: Optional[str] = None):
    """Configure application logging"""
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RedactSecretsFilter())

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler]
    )

    # Third-party loggers are noisy below WARNING
    for noisy in ("sqlalchemy.engine", "sqlalchemy.pool", "httpx", "httpcore", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured at {level_name} level")
