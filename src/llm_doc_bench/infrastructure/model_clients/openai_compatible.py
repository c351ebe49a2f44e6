"""
OpenAI-compatible chat server model client (LM Studio, vLLM, llama.cpp server, ...)
"""

import base64
import logging
import time

import openai
from openai import AsyncOpenAI

from llm_doc_bench.domain.value_objects import ConversationPlan, GenerationOptions, ModelResponse
from llm_doc_bench.infrastructure.model_clients.base import (
    ModelClient,
    ModelTimeoutError,
    ModelTransportError,
)

logger = logging.getLogger(__name__)


def basic_auth_header(username: str, password: str) -> str:
    """Prepared HTTP Basic credential"""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class OpenAICompatibleClient(ModelClient):
    """Client for servers exposing the OpenAI /v1/chat/completions API"""

    def __init__(
        self,
        model_name: str,
        base_url: str = "http://127.0.0.1:1234",
        api_key: str = "lm-studio",
        timeout_seconds: float = 900.0,
        auth_header: str | None = None,
    ):
        """
        Args:
            model_name: Model id as reported by the server's /v1/models
            base_url: Server root URL (/v1 is appended when missing)
            api_key: API key (usually ignored by local servers)
            timeout_seconds: Request timeout; no retries are attempted
            auth_header: Optional prepared Authorization header value
        """
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds

        base_url = base_url.rstrip("/")
        if not base_url.endswith("/v1"):
            base_url = f"{base_url}/v1"
        self.base_url = base_url

        headers = {"Authorization": auth_header} if auth_header else None
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout_seconds,
            max_retries=0,
            default_headers=headers,
        )

    async def chat(self, plan: ConversationPlan, options: GenerationOptions) -> ModelResponse:
        """
        Send a conversation and retrieve the response

        Raises:
            ModelTimeoutError: If the server does not answer in time
            ModelTransportError: On connection failure or non-2xx status
        """
        extra = {}
        if options.response_schema is not None:
            extra["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "document_analysis",
                    "strict": True,
                    "schema": options.response_schema,
                },
            }

        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=plan.to_messages(),
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                top_p=options.top_p,
                **extra,
            )
        except openai.APITimeoutError as e:
            raise ModelTimeoutError(self.model_name, self.timeout_seconds) from e
        except openai.APIStatusError as e:
            raise ModelTransportError(
                f"API request failed with status {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.APIConnectionError as e:
            raise ModelTransportError(f"No response received from server: {e}") from e
        end_time = time.time()

        choice = response.choices[0]
        content = choice.message.content or ""
        if content and choice.finish_reason == "length":
            logger.warning("Response from %s may be truncated (finish_reason=length)", self.model_name)

        # Retrieve token usage
        input_tokens = 0
        output_tokens = 0
        if response.usage:
            input_tokens = response.usage.prompt_tokens or 0
            output_tokens = response.usage.completion_tokens or 0

        return ModelResponse(
            content=content,
            latency_ms=int((end_time - start_time) * 1000),
            model_name=self.model_name,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason=choice.finish_reason,
        )

    async def list_models(self) -> list[str]:
        """Model ids reported by /v1/models"""
        try:
            return [model.id async for model in self.client.models.list()]
        except openai.APITimeoutError as e:
            raise ModelTimeoutError(self.model_name, self.timeout_seconds) from e
        except openai.APIStatusError as e:
            raise ModelTransportError(
                f"API request failed with status {e.status_code}: {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.APIConnectionError as e:
            raise ModelTransportError(f"No response received from server: {e}") from e

    async def aclose(self) -> None:
        await self.client.close()
