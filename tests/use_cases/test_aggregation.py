"""
aggregation.pyのテスト
"""

import pytest

from llm_doc_bench.domain.entities import ExecutionResult
from llm_doc_bench.domain.value_objects import QualitativeAssessment, QuantitativeMetrics
from llm_doc_bench.use_cases.aggregation import (
    CSV_COLUMNS,
    average_by,
    overall_averages,
    results_frame,
    summarize_run,
)


def _result(model="m1", base_name="x", document_id="doc1", overall=0.5, accuracy=None, user_prompt_id="user_x"):
    accuracy = overall if accuracy is None else accuracy
    return ExecutionResult(
        id=f"{model}-{base_name}-{document_id}",
        timestamp="2026-01-01T12:00:00+00:00",
        model=model,
        prompt_id=f"user_{base_name}",
        prompt_role="user",
        prompt_base_name=base_name,
        document_id=document_id,
        quantitative=QuantitativeMetrics(
            accuracy=accuracy, completeness=overall, relevance=overall, overall=overall,
            errors=["Missing required field: summary"],
        ),
        qualitative=QualitativeAssessment(strengths=["a", "b"], weaknesses=["c"], suggestions=[]),
        parsed_response={},
        system_prompt_id="system_x",
        user_prompt_id=user_prompt_id,
    )


class TestAverageBy:
    """average_by() のテスト"""

    def test_mean_per_model(self):
        results = [_result(overall=0.2), _result(overall=0.5), _result(overall=0.8)]
        assert average_by(results, "model")["m1"]["overall"] == pytest.approx(0.5)

    def test_rounded_to_four_decimals(self):
        results = [_result(overall=0.1), _result(overall=0.2), _result(overall=0.2)]
        assert average_by(results, "model")["m1"]["overall"] == 0.1667

    def test_groups_in_first_seen_order(self):
        results = [_result(model="b"), _result(model="a"), _result(model="b")]
        assert list(average_by(results, "model")) == ["b", "a"]

    def test_by_prompt_family(self):
        results = [
            _result(base_name="summary", overall=1.0),
            _result(base_name="summary", overall=0.0),
            _result(base_name="detail", overall=0.6),
        ]
        averages = average_by(results, "prompt")
        assert averages["summary"]["overall"] == 0.5
        assert averages["detail"]["overall"] == 0.6

    def test_by_document(self):
        results = [_result(document_id="d1", overall=0.4), _result(document_id="d2", overall=0.9)]
        assert set(average_by(results, "document")) == {"d1", "d2"}

    def test_each_metric_averaged_separately(self):
        results = [_result(overall=0.5, accuracy=1.0), _result(overall=0.5, accuracy=0.0)]
        metrics = average_by(results)["m1"]
        assert metrics["accuracy"] == 0.5
        assert metrics["overall"] == 0.5

    def test_empty(self):
        assert average_by([], "model") == {}

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown grouping key"):
            average_by([_result()], "temperature")


class TestSummarizeRun:

    def test_counts_failures_from_total(self):
        results = [_result(overall=0.2), _result(overall=0.8)]

        summary = summarize_run("r1", results, total=3)

        assert summary.successful == 2
        assert summary.failed == 1
        assert summary.average_scores["overall"] == 0.5
        assert summary.by_model["m1"]["overall"] == 0.5
        assert summary.by_prompt["x"]["overall"] == 0.5

    def test_empty_run(self):
        summary = summarize_run("r1", [], total=2)
        assert summary.failed == 2
        assert summary.average_scores == {}
        assert overall_averages([]) == {}


class TestResultsFrame:
    """CSVレイアウト"""

    def test_columns_and_counts(self):
        df = results_frame([_result(overall=1 / 3)])

        assert list(df.columns) == CSV_COLUMNS
        row = df.iloc[0]
        assert row["overall_score"] == 0.3333
        assert row["input_user_prompt"] == "user_x"
        assert row["input_assistant_prompt"] == "N/A"
        assert row["errors_count"] == 1
        assert row["strengths_count"] == 2
        assert row["weaknesses_count"] == 1
        assert row["suggestions_count"] == 0

    def test_missing_user_prompt(self):
        df = results_frame([_result(user_prompt_id=None)])
        assert df.iloc[0]["input_user_prompt"] == "N/A"

    def test_empty(self):
        df = results_frame([])
        assert df.empty
        assert list(df.columns) == CSV_COLUMNS
