"""
LangFuse Observability Integration
Provides tracing and monitoring for LLM calls.
"""
from typing import Optional
from langfuse.callback import CallbackHandler

from roadside.core.config import settings
from roadside.core.logging import logger


_langfuse_handler: Optional[CallbackHandler] = None


def get_langfuse_handler() -> Optional[CallbackHandler]:
    """
    Get LangFuse callback handler for LLM observability.
    Returns None if LangFuse is not configured.
    """
    global _langfuse_handler

    if not settings.LANGFUSE_PUBLIC_KEY:
        return None

    if _langfuse_handler is None:
        try:
            _langfuse_handler = CallbackHandler(
                public_key=settings.LANGFUSE_PUBLIC_KEY,
                secret_key=settings.LANGFUSE_SECRET_KEY,
                host=settings.LANGFUSE_HOST,
            )
            logger.info("LangFuse handler initialized successfully")
        except Exception as e:
            logger.warning(f"Failed to initialize LangFuse: {e}")
            return None

    return _langfuse_handler


def get_llm_callbacks() -> list:
    """Callbacks to attach to every model invocation."""
    handler = get_langfuse_handler()
    return [handler] if handler else []


def flush_langfuse():
    """Flush pending traces to LangFuse."""
    if _langfuse_handler is not None:
        try:
            _langfuse_handler.flush()
        except Exception as e:
            logger.warning(f"Failed to flush LangFuse: {e}")
