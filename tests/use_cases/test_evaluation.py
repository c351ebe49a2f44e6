"""
evaluation.pyのテスト

TestCaseProcessor の1ケース処理（相関 → キャッシュ → 呼び出し → 抽出 → 評価 → 書き込み）を確認する。
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from llm_doc_bench.domain.entities import DocumentUnit, PromptRole, PromptUnit, TestCase
from llm_doc_bench.domain.value_objects import GenerationOptions, ModelResponse
from llm_doc_bench.harness_config import HarnessConfig
from llm_doc_bench.response_cache import ResponseCache
from llm_doc_bench.scoring.evaluator import SafeEvaluator
from llm_doc_bench.scoring.plugins import FunctionEvaluator, load_evaluator
from llm_doc_bench.use_cases.aggregation import summarize_run
from llm_doc_bench.use_cases.evaluation import (
    TestCaseProcessor,
    generation_options,
    load_response_schema,
    result_id,
)

SYSTEM = PromptUnit(id="system_summary", role=PromptRole.SYSTEM, base_name="summary", content="You summarize. ")
USER = PromptUnit(id="user_summary", role=PromptRole.USER, base_name="summary", content="Summarize: ")
LEGACY = PromptUnit(id="summary_prompt", role=PromptRole.LEGACY, base_name="summary_prompt", content="Read: ")
PROMPTS = {p.id: p for p in (SYSTEM, USER, LEGACY)}
DOCUMENT = DocumentUnit(id="report.txt", content="The key analysis.")

RESPONSE_TEXT = '```json\n{"summary": "key analysis", "main_points": ["a"]}\n```'


def _response(content=RESPONSE_TEXT):
    return ModelResponse(content=content, latency_ms=120, model_name="m1", input_tokens=5, output_tokens=9)


def _client(content=RESPONSE_TEXT):
    client = MagicMock()
    client.chat = AsyncMock(return_value=_response(content))
    client.aclose = AsyncMock()
    return client


def _processor(tmp_path, client, cache_enabled=True, sink=None):
    return TestCaseProcessor(
        client_factory=lambda model: client,
        prompts=PROMPTS,
        cache=ResponseCache(tmp_path / "cache", enabled=cache_enabled),
        evaluator=load_evaluator("default"),
        options=GenerationOptions(max_tokens=100),
        sink=sink,
    )


class TestTestCaseProcessor:
    """TestCaseProcessor のテスト"""

    @pytest.mark.asyncio
    async def test_processes_user_prompt(self, tmp_path):
        client = _client()
        processor = _processor(tmp_path, client)

        result = await processor(TestCase("m1", USER, DOCUMENT), "1/1")

        plan, options = client.chat.call_args.args
        assert plan.content_for("system") == "You summarize. The key analysis."
        assert plan.content_for("user") == "Summarize: The key analysis."
        assert options.max_tokens == 100
        assert result.id == "m1-user_summary-report.txt"
        assert result.parsed_response == {"summary": "key analysis", "main_points": ["a"]}
        assert result.system_prompt_id == "system_summary"
        assert result.user_prompt_id == "user_summary"
        assert result.assistant_prompt_id is None
        assert result.prompt_base_name == "summary"
        assert result.latency_ms == 120
        assert result.cached is False
        assert result.quantitative.completeness == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_legacy_prompt_has_no_user_prompt_id(self, tmp_path):
        processor = _processor(tmp_path, _client())

        result = await processor(TestCase("m1", LEGACY, DOCUMENT))

        assert result.user_prompt_id is None
        assert result.prompt_role == "legacy"

    @pytest.mark.asyncio
    async def test_cache_hit_skips_model_call(self, tmp_path):
        """2回目はキャッシュから応答し、モデルは呼ばれない"""
        client = _client()
        processor = _processor(tmp_path, client)
        test_case = TestCase("m1", USER, DOCUMENT)

        first = await processor(test_case)
        second = await processor(test_case)

        assert client.chat.await_count == 1
        assert first.cached is False
        assert second.cached is True
        assert second.quantitative == first.quantitative

    @pytest.mark.asyncio
    async def test_disabled_cache_always_calls_model(self, tmp_path):
        client = _client()
        processor = _processor(tmp_path, client, cache_enabled=False)
        test_case = TestCase("m1", USER, DOCUMENT)

        await processor(test_case)
        await processor(test_case)

        assert client.chat.await_count == 2

    @pytest.mark.asyncio
    async def test_unparseable_response_still_produces_result(self, tmp_path):
        processor = _processor(tmp_path, _client("no json here"))

        result = await processor(TestCase("m1", USER, DOCUMENT))

        assert result.parsed_response == "no json here"
        assert result.quantitative.completeness == 0.0

    @pytest.mark.parametrize("returned", [None, {"overall": None}])
    @pytest.mark.asyncio
    async def test_invalid_evaluator_output_still_produces_result(self, tmp_path, returned):
        """評価関数が不正な値を返しても、ケースも集計も失敗しない"""
        processor = TestCaseProcessor(
            client_factory=lambda model: _client(),
            prompts=PROMPTS,
            cache=ResponseCache(tmp_path / "cache", enabled=False),
            evaluator=SafeEvaluator(FunctionEvaluator(quantitative_fn=lambda r, o: returned)),
        )

        result = await processor(TestCase("m1", USER, DOCUMENT))
        summary = summarize_run("r1", [result], total=1)

        assert result.quantitative.overall == 0.0
        assert len(result.quantitative.errors) == 1
        assert summary.successful == 1
        assert summary.by_model["m1"]["overall"] == 0.0

    @pytest.mark.asyncio
    async def test_model_error_propagates(self, tmp_path):
        client = _client()
        client.chat = AsyncMock(side_effect=RuntimeError("server down"))
        processor = _processor(tmp_path, client)

        with pytest.raises(RuntimeError, match="server down"):
            await processor(TestCase("m1", USER, DOCUMENT))

    @pytest.mark.asyncio
    async def test_sink_receives_result(self, tmp_path):
        sink = MagicMock()
        sink.write_result = AsyncMock()
        processor = _processor(tmp_path, _client(), sink=sink)

        result = await processor(TestCase("m1", USER, DOCUMENT))

        sink.write_result.assert_awaited_once_with(result)

    @pytest.mark.asyncio
    async def test_one_client_per_model(self, tmp_path):
        factory = MagicMock(side_effect=lambda model: _client())
        processor = TestCaseProcessor(
            client_factory=factory,
            prompts=PROMPTS,
            cache=ResponseCache(tmp_path, enabled=False),
            evaluator=load_evaluator("default"),
        )

        await processor(TestCase("m1", USER, DOCUMENT))
        await processor(TestCase("m1", USER, DocumentUnit(id="other.txt", content="x")))
        await processor(TestCase("m2", USER, DOCUMENT))
        await processor.aclose()

        assert [c.args[0] for c in factory.call_args_list] == ["m1", "m2"]


class TestHelpers:

    def test_result_id(self):
        assert result_id(TestCase("m1", USER, DOCUMENT)) == "m1-user_summary-report.txt"

    def test_generation_options_from_config(self):
        options = generation_options(HarnessConfig(), {"type": "object"})
        assert options.temperature == HarnessConfig().models.temperature
        assert options.response_schema == {"type": "object"}

    def test_load_response_schema(self, tmp_path):
        (tmp_path / "response_format.schema.json").write_text('{"type": "object"}')
        assert load_response_schema(tmp_path) == {"type": "object"}

    def test_missing_schema(self, tmp_path, caplog):
        assert load_response_schema(tmp_path) is None
        assert "Response schema not found" in caplog.text

    def test_invalid_schema(self, tmp_path):
        (tmp_path / "response_format.schema.json").write_text("{not json")
        assert load_response_schema(tmp_path) is None
