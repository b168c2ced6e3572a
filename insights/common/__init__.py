"""
Expert Insights Common Module

Configuration, LLM access and record-store access shared by the retriever.
"""

from .config import InsightsConfig, load_config
from .llm_client import LLMClient, create_llm_client
from .store_client import StoreError, SupabaseRestClient, create_store_client

__all__ = [
    "InsightsConfig",
    "load_config",
    "LLMClient",
    "create_llm_client",
    "StoreError",
    "SupabaseRestClient",
    "create_store_client",
]
