"""Tests for domain entities and value objects"""

import json

from llm_doc_bench.domain.entities import (
    DocumentUnit,
    ExecutionResult,
    HealthCheckResult,
    PromptRole,
    PromptUnit,
    RunSummary,
    TestCase,
)
from llm_doc_bench.domain.value_objects import (
    ChatMessage,
    ConversationPlan,
    GenerationOptions,
    ModelResponse,
    QualitativeAssessment,
    QuantitativeMetrics,
)


def _result(**overrides):
    values = dict(
        id="m1-user_x-doc1",
        timestamp="2026-01-01T12:00:00+00:00",
        model="m1",
        prompt_id="user_x",
        prompt_role="user",
        prompt_base_name="x",
        document_id="doc1",
        quantitative=QuantitativeMetrics(accuracy=0.5, completeness=0.6, relevance=0.25, overall=0.49),
        qualitative=QualitativeAssessment(strengths=["Contains summary"]),
        parsed_response={"summary": "ok"},
        system_prompt_id="system_x",
        user_prompt_id="user_x",
    )
    values.update(overrides)
    return ExecutionResult(**values)


class TestTestCase:

    def test_key(self):
        prompt = PromptUnit(id="user_x", role=PromptRole.USER, base_name="x", content="c")
        case = TestCase(model="m1", prompt_unit=prompt, document_unit=DocumentUnit(id="doc1", content="d"))
        assert case.key == ("m1", "user_x", "doc1")

    def test_prompt_role_is_string_enum(self):
        assert PromptRole("system") is PromptRole.SYSTEM
        assert PromptRole.USER.value == "user"


class TestExecutionResult:

    def test_defaults(self):
        result = _result()
        assert result.assistant_prompt_id is None
        assert result.latency_ms == 0
        assert result.cached is False

    def test_to_dict_is_json_serializable(self):
        data = _result().to_dict()
        assert data["quantitative"]["overall"] == 0.49
        json.dumps(data)

    def test_from_dict_roundtrip(self):
        original = _result(latency_ms=250, cached=True)
        restored = ExecutionResult.from_dict(original.to_dict())
        assert restored == original

    def test_from_dict_ignores_unknown_keys(self):
        data = _result().to_dict()
        data["extra"] = "ignored"
        assert ExecutionResult.from_dict(data).id == "m1-user_x-doc1"


class TestRunSummary:

    def test_success_rate(self):
        summary = RunSummary(run_id="r", total=10, successful=9, failed=1)
        assert summary.success_rate == 0.9

    def test_success_rate_empty_run(self):
        assert RunSummary(run_id="r", total=0, successful=0, failed=0).success_rate == 0.0


class TestHealthCheckResult:

    def test_failure(self):
        result = HealthCheckResult(model_name="m1", success=False, error="down")
        assert result.latency_ms is None
        assert result.error == "down"


class TestValueObjects:

    def test_conversation_plan(self):
        plan = ConversationPlan(
            messages=(ChatMessage("system", "s"), ChatMessage("user", "u")),
            source_prompts={"system": "system_x", "user": "user_x"},
        )
        assert plan.roles == ["system", "user"]
        assert plan.content_for("user") == "u"
        assert plan.content_for("assistant") is None
        assert plan.to_messages() == [
            {"role": "system", "content": "s"},
            {"role": "user", "content": "u"},
        ]

    def test_generation_options_defaults(self):
        options = GenerationOptions()
        assert options.temperature == 0.7
        assert options.max_tokens == 30000
        assert options.top_p == 0.95
        assert options.response_schema is None

    def test_model_response_roundtrip(self):
        response = ModelResponse(content="x", latency_ms=5, model_name="m", input_tokens=1, output_tokens=2)
        assert ModelResponse.from_dict(response.to_dict()) == response

    def test_model_response_from_minimal_dict(self):
        response = ModelResponse.from_dict({"content": "x", "model_name": "m"})
        assert response.latency_ms == 0
        assert response.finish_reason is None
