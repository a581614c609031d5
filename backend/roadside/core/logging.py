"""
Logging configuration with field masking for sensitive data
"""
import logging
import re
from typing import Any

from roadside.core.config import settings
from roadside.core.data_classification import detect_and_mask_pii, sanitize_for_logging


# Patterns to mask in logs
MASK_PATTERNS = [
    (r'"(driver_)?email":\s*"[^"]*"', '"email": "***@***"'),
    (r"'(driver_)?email':\s*'[^']*'", "'email': '***@***'"),
    (r'"(driver_)?phone(_number)?":\s*"[^"]*"', '"phone": "***"'),
    (r"'(driver_)?phone(_number)?':\s*'[^']*'", "'phone': '***'"),
    (r'"recipient":\s*"[^"]*"', '"recipient": "***"'),
    (r'"policy_number":\s*"[^"]*"', '"policy_number": "***"'),
]


class MaskingFormatter(logging.Formatter):
    """Custom formatter that masks sensitive fields."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = re.sub(pattern, replacement, message, flags=re.IGNORECASE)
        return detect_and_mask_pii(message)


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    logger = logging.getLogger("roadside")
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

        # Format with masking
        formatter = MaskingFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        console_handler.setFormatter(formatter)

        logger.addHandler(console_handler)

    return logger


# Global logger instance
logger = setup_logging()


def get_logger(name: str) -> logging.Logger:
    """Get a child of the application logger (inherits the masking handler)."""
    if name.startswith("roadside"):
        return logging.getLogger(name)
    return logger.getChild(name)


def log_audit_event(
    event_type: str,
    actor_id: str,
    actor_type: str,
    details: dict[str, Any],
) -> None:
    """Log an audit event."""
    logger.info(
        f"AUDIT: {event_type} | actor={actor_id} ({actor_type}) | details={sanitize_for_logging(details or {})}"
    )
