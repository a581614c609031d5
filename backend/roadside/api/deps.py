"""
API dependencies
"""
from langchain_core.language_models import BaseChatModel

from roadside.db import get_db
from roadside.orchestration.routing import get_llm


def get_chat_model() -> BaseChatModel:
    """Chat model used for claim turns."""
    return get_llm()


__all__ = [
    "get_db",
    "get_chat_model",
]
