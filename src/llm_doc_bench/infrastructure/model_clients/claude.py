"""
Anthropic Claude model client
"""

import os
import time

import anthropic
from anthropic import AsyncAnthropic

from llm_doc_bench.domain.value_objects import ConversationPlan, GenerationOptions, ModelResponse
from llm_doc_bench.infrastructure.model_clients.base import (
    ModelClient,
    ModelTimeoutError,
    ModelTransportError,
)


class ClaudeClient(ModelClient):
    """Claude client using the Anthropic API"""

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        timeout_seconds: float = 900.0,
    ):
        """
        Args:
            model_name: Model name (e.g. claude-sonnet-4-5-20250514)
            api_key: Anthropic API key (falls back to environment variable if not specified)
            timeout_seconds: Request timeout; no retries are attempted
        """
        self.model_name = model_name
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.timeout_seconds = timeout_seconds

        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")

        self.client = AsyncAnthropic(api_key=self.api_key, timeout=timeout_seconds, max_retries=0)

    async def chat(self, plan: ConversationPlan, options: GenerationOptions) -> ModelResponse:
        """
        Send a conversation and retrieve the response

        The system message is passed separately; user/assistant messages are
        sent as turns (a trailing assistant message acts as a prefill).
        """
        system = plan.content_for("system")
        turns = [m.to_dict() for m in plan.messages if m.role != "system"]
        extra = {"system": system} if system else {}

        start_time = time.time()
        try:
            response = await self.client.messages.create(
                model=self.model_name,
                max_tokens=options.max_tokens,
                temperature=options.temperature,
                messages=turns,
                **extra,
            )
        except anthropic.APITimeoutError as e:
            raise ModelTimeoutError(self.model_name, self.timeout_seconds) from e
        except anthropic.APIStatusError as e:
            raise ModelTransportError(
                f"API request failed with status {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise ModelTransportError(f"No response received from server: {e}") from e
        end_time = time.time()

        output = "".join(block.text for block in response.content if block.type == "text")

        # Retrieve token usage
        input_tokens = getattr(response.usage, "input_tokens", 0) or 0
        output_tokens = getattr(response.usage, "output_tokens", 0) or 0

        return ModelResponse(
            content=output,
            latency_ms=int((end_time - start_time) * 1000),
            model_name=self.model_name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason=response.stop_reason,
        )

    async def list_models(self) -> list[str]:
        """Model ids available to the API key"""
        try:
            return [model.id async for model in self.client.models.list()]
        except anthropic.APITimeoutError as e:
            raise ModelTimeoutError(self.model_name, self.timeout_seconds) from e
        except anthropic.APIError as e:
            raise ModelTransportError(f"Could not list Anthropic models: {e}") from e

    async def aclose(self) -> None:
        await self.client.close()
