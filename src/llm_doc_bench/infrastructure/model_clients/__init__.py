"""
Model client package

Provides a unified interface to each LLM provider.
"""

from llm_doc_bench.infrastructure.model_clients.base import (
    ModelClient,
    ModelInvocationError,
    ModelTimeoutError,
    ModelTransportError,
    file_safe_model_id,
)
from llm_doc_bench.infrastructure.model_clients.factory import create_client

__all__ = [
    "ModelClient",
    "ModelInvocationError",
    "ModelTimeoutError",
    "ModelTransportError",
    "create_client",
    "file_safe_model_id",
]
