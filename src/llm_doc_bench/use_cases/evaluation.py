"""
Test Case Execution

Runs one test case end to end: correlate the conversation, consult the
response cache, invoke the model on a miss, extract structured data, score it
and hand the result to the persistence sink.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Protocol

from llm_doc_bench.domain.constants import FRACTION_DIGITS, RESPONSE_SCHEMA_FILE
from llm_doc_bench.domain.entities import ExecutionResult, PromptRole, PromptUnit, TestCase
from llm_doc_bench.domain.value_objects import GenerationOptions, ModelResponse
from llm_doc_bench.harness_config import HarnessConfig
from llm_doc_bench.infrastructure.model_clients.base import ModelClient
from llm_doc_bench.json_extraction import extract_with_strategy, response_text
from llm_doc_bench.response_cache import ResponseCache, cache_key
from llm_doc_bench.role_correlator import build_conversation
from llm_doc_bench.scoring.evaluator import EvaluationOptions, Evaluator

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    """Receives every successful result as soon as it exists"""

    async def write_result(self, result: ExecutionResult) -> None:
        ...


def load_response_schema(schemas_dir: str | Path) -> dict | None:
    """
    Load the structured-output JSON schema

    Returns:
        The schema dict, or None when the file is missing or invalid
    """
    path = Path(schemas_dir) / RESPONSE_SCHEMA_FILE
    try:
        schema = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("Response schema not found at %s; continuing without structured output", path)
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not load response schema %s: %s", path, e)
        return None
    logger.info("Loaded response schema from %s", path)
    return schema


def generation_options(config: HarnessConfig, response_schema: dict | None = None) -> GenerationOptions:
    """Sampling parameters from the harness configuration"""
    return GenerationOptions(
        temperature=config.models.temperature,
        max_tokens=config.models.max_tokens,
        top_p=config.models.top_p,
        response_schema=response_schema,
    )


def result_id(test_case: TestCase) -> str:
    model, prompt_id, document_id = test_case.key
    return f"{model}-{prompt_id}-{document_id}"


class TestCaseProcessor:
    """Callable handed to the scheduler; one instance per run"""
    __test__ = False  # not a pytest class

    def __init__(
        self,
        client_factory: Callable[[str], ModelClient],
        prompts: dict[str, PromptUnit],
        cache: ResponseCache,
        evaluator: Evaluator,
        options: GenerationOptions | None = None,
        evaluation_options: EvaluationOptions | None = None,
        sink: ResultSink | None = None,
    ) -> None:
        self.client_factory = client_factory
        self.prompts = prompts
        self.cache = cache
        self.evaluator = evaluator
        self.options = options or GenerationOptions()
        self.evaluation_options = evaluation_options or EvaluationOptions.defaults()
        self.sink = sink
        self._clients: dict[str, ModelClient] = {}

    def client_for(self, model: str) -> ModelClient:
        """One client per model, created on first use"""
        client = self._clients.get(model)
        if client is None:
            client = self.client_factory(model)
            self._clients[model] = client
        return client

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()

    async def invoke(self, test_case: TestCase) -> tuple[ModelResponse, dict[str, str | None], bool]:
        """
        Model response for a test case, served from the cache when possible

        Returns:
            (response, source prompt ids by role, whether it came from the cache)
        """
        prompt = test_case.prompt_unit
        document_text = test_case.document_unit.content
        plan = build_conversation(prompt, document_text, self.prompts)

        key = cache_key(test_case.model, prompt, document_text)
        cached = await self.cache.lookup(key)
        if cached is not None:
            logger.info("Using cached response for %s", result_id(test_case))
            return cached, plan.source_prompts, True

        response = await self.client_for(test_case.model).chat(plan, self.options)
        await self.cache.store(key, response)
        return response, plan.source_prompts, False

    async def __call__(self, test_case: TestCase, test_id: str = "") -> ExecutionResult:
        model, prompt_id, document_id = test_case.key
        prompt = test_case.prompt_unit
        logger.info("TEST %s STARTED | model=%s prompt=%s file=%s", test_id, model, prompt_id, document_id)

        response, sources, cached = await self.invoke(test_case)

        parsed, strategy = extract_with_strategy(response_text(response))
        logger.debug("Extracted response for %s using %s", result_id(test_case), strategy.value)

        evaluation = self.evaluator.evaluate(parsed, self.evaluation_options)
        quantitative = evaluation.quantitative

        result = ExecutionResult(
            id=result_id(test_case),
            timestamp=datetime.now(timezone.utc).isoformat(),
            model=model,
            prompt_id=prompt_id,
            prompt_role=prompt.role.value,
            prompt_base_name=prompt.base_name,
            document_id=document_id,
            quantitative=quantitative,
            qualitative=evaluation.qualitative,
            parsed_response=parsed,
            system_prompt_id=sources.get("system"),
            user_prompt_id=prompt_id if prompt.role == PromptRole.USER else None,
            assistant_prompt_id=sources.get("assistant"),
            latency_ms=response.latency_ms,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            cached=cached,
        )

        logger.info(
            "TEST %s COMPLETED in %d ms | overall=%.*f accuracy=%.*f completeness=%.*f relevance=%.*f",
            test_id, response.latency_ms,
            FRACTION_DIGITS, quantitative.overall,
            FRACTION_DIGITS, quantitative.accuracy,
            FRACTION_DIGITS, quantitative.completeness,
            FRACTION_DIGITS, quantitative.relevance,
        )

        if self.sink is not None:
            await self.sink.write_result(result)
        return result
