"""
Core module exports
"""
from roadside.core.config import settings
from roadside.core.exceptions import (
    ClaimNotFoundError,
    TransitionRejected,
    TurnProcessingError,
)
from roadside.core.logging import logger, get_logger, log_audit_event

__all__ = [
    "settings",
    "ClaimNotFoundError",
    "TransitionRejected",
    "TurnProcessingError",
    "logger",
    "get_logger",
    "log_audit_event",
]
