"""
LLM Provider Routing - config-driven provider selection
"""
from enum import Enum

from langchain_core.language_models import BaseChatModel
from langchain_ollama import ChatOllama

from roadside.core.config import settings
from roadside.core.logging import get_logger

logger = get_logger(__name__)


class LLMProvider(str, Enum):
    BEDROCK = "bedrock"
    OLLAMA = "ollama"


def get_llm() -> BaseChatModel:
    """
    Get the configured chat model.

    The provider comes from LLM_PROVIDER; Bedrock falls back to Ollama when
    the client cannot be created.
    """
    provider = settings.LLM_PROVIDER
    logger.info(f"Using LLM provider: {provider}")

    if provider == LLMProvider.BEDROCK.value:
        return _get_bedrock_llm()
    return _get_ollama_llm()


def _get_ollama_llm() -> BaseChatModel:
    """Get Ollama LLM instance."""
    return ChatOllama(
        model=settings.OLLAMA_MODEL,
        base_url=settings.OLLAMA_BASE_URL,
        temperature=settings.LLM_TEMPERATURE,
        client_kwargs={"timeout": settings.LLM_TIMEOUT_SECONDS},
    )


def _get_bedrock_llm() -> BaseChatModel:
    """Get AWS Bedrock LLM instance."""
    from langchain_aws import ChatBedrock
    from botocore.config import Config as BotoConfig
    import boto3

    try:
        bedrock_runtime = boto3.client(
            "bedrock-runtime",
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            config=BotoConfig(
                read_timeout=settings.LLM_TIMEOUT_SECONDS,
                connect_timeout=10,
                retries={"max_attempts": 2},
            ),
        )

        return ChatBedrock(
            client=bedrock_runtime,
            model_id=settings.BEDROCK_MODEL_ID,
            model_kwargs={"temperature": settings.LLM_TEMPERATURE, "max_tokens": 4096},
        )
    except Exception as e:
        logger.error(f"Failed to initialize Bedrock: {e}, falling back to Ollama")
        return _get_ollama_llm()
