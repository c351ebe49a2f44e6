"""
Model client factory

Creates the appropriate client instance based on the model name.
"""

from __future__ import annotations

from llm_doc_bench.harness_config import HarnessConfig
from llm_doc_bench.infrastructure.model_clients.base import ModelClient
from llm_doc_bench.infrastructure.model_clients.claude import ClaudeClient
from llm_doc_bench.infrastructure.model_clients.openai_compatible import (
    OpenAICompatibleClient,
    basic_auth_header,
)


def create_client(model_name: str, config: HarnessConfig) -> ModelClient:
    """
    Create the appropriate client based on the model name

    Args:
        model_name: Model name
        config: HarnessConfig

    Returns:
        ModelClient: ClaudeClient for claude* names, otherwise a client for
        the configured OpenAI-compatible server
    """
    timeout = config.server.timeout_seconds

    if model_name.startswith("claude"):
        return ClaudeClient(model_name, timeout_seconds=timeout)

    auth_header = None
    if config.server.auth_username and config.server.auth_password:
        auth_header = basic_auth_header(config.server.auth_username, config.server.auth_password)
    return OpenAICompatibleClient(
        model_name,
        base_url=config.server.url,
        timeout_seconds=timeout,
        auth_header=auth_header,
    )
