# =============================================================================
# DOCS UPDATER - LLM PACKAGE
# =============================================================================
"""LLM provider client used by the pipeline stages."""

from docs_updater.llm.client import (
    LLMClient,
    LLMMessage,
    LLMResponse,
    LLMError,
    LLMProviderError,
    create_llm_client,
)


__all__ = [
    "LLMClient",
    "LLMMessage",
    "LLMResponse",
    "LLMError",
    "LLMProviderError",
    "create_llm_client",
]
