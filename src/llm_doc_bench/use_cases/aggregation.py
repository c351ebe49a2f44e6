"""
Result Aggregation

Per-model and per-prompt-family averages of the quantitative metrics, the
run summary, and the flat CSV layout of individual results.
"""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from llm_doc_bench.domain.constants import FRACTION_DIGITS, METRIC_NAMES, NOT_AVAILABLE
from llm_doc_bench.domain.entities import ExecutionResult, RunSummary

CSV_COLUMNS = [
    "id",
    "timestamp",
    "model",
    "input_user_prompt",
    "input_system_prompt",
    "input_assistant_prompt",
    "input_data_file",
    # Quantitative metrics
    "overall_score",
    "accuracy",
    "completeness",
    "relevance",
    "errors_count",
    # Qualitative metrics
    "strengths_count",
    "weaknesses_count",
    "suggestions_count",
]

# Grouping keys accepted by average_by
GROUP_KEYS = {
    "model": "model",
    "prompt": "prompt_base_name",
    "prompt_base_name": "prompt_base_name",
    "document": "document_id",
}


def metrics_frame(results: Iterable[ExecutionResult]) -> pd.DataFrame:
    """One row per result with the grouping keys and the four metrics"""
    rows = [
        {
            "model": r.model,
            "prompt_base_name": r.prompt_base_name,
            "document_id": r.document_id,
            **{name: float(getattr(r.quantitative, name)) for name in METRIC_NAMES},
        }
        for r in results
    ]
    return pd.DataFrame(rows, columns=["model", "prompt_base_name", "document_id", *METRIC_NAMES])


def average_by(results: Iterable[ExecutionResult], key: str = "model") -> dict[str, dict[str, float]]:
    """
    Arithmetic mean of every metric per group

    Args:
        results: Successful execution results
        key: "model", "prompt" (prompt family) or "document"

    Returns:
        {group: {metric: mean rounded to 4 decimals}}, in first-seen group order;
        only groups that have at least one result appear
    """
    if key not in GROUP_KEYS:
        raise ValueError(f"Unknown grouping key: {key}. Valid keys: {sorted(GROUP_KEYS)}")
    df = metrics_frame(results)
    if df.empty:
        return {}

    means = df.groupby(GROUP_KEYS[key], sort=False)[METRIC_NAMES].mean().round(FRACTION_DIGITS)
    return {
        str(group): {name: float(row[name]) for name in METRIC_NAMES}
        for group, row in means.iterrows()
    }


def overall_averages(results: Iterable[ExecutionResult]) -> dict[str, float]:
    """Mean of every metric across all results; empty input gives {}"""
    df = metrics_frame(results)
    if df.empty:
        return {}
    means = df[METRIC_NAMES].mean().round(FRACTION_DIGITS)
    return {name: float(means[name]) for name in METRIC_NAMES}


def summarize_run(run_id: str, results: list[ExecutionResult], total: int) -> RunSummary:
    """
    Run-level statistics

    Args:
        run_id: Run identifier
        results: Successful results
        total: Number of test cases scheduled (successful + failed)
    """
    return RunSummary(
        run_id=run_id,
        total=total,
        successful=len(results),
        failed=max(total - len(results), 0),
        average_scores=overall_averages(results),
        by_model=average_by(results, "model"),
        by_prompt=average_by(results, "prompt"),
    )


def _csv_row(result: ExecutionResult) -> dict:
    quantitative = result.quantitative
    qualitative = result.qualitative
    return {
        "id": result.id,
        "timestamp": result.timestamp,
        "model": result.model or NOT_AVAILABLE,
        "input_user_prompt": result.user_prompt_id or NOT_AVAILABLE,
        "input_system_prompt": result.system_prompt_id or NOT_AVAILABLE,
        "input_assistant_prompt": result.assistant_prompt_id or NOT_AVAILABLE,
        "input_data_file": result.document_id or NOT_AVAILABLE,
        "overall_score": round(quantitative.overall, FRACTION_DIGITS),
        "accuracy": round(quantitative.accuracy, FRACTION_DIGITS),
        "completeness": round(quantitative.completeness, FRACTION_DIGITS),
        "relevance": round(quantitative.relevance, FRACTION_DIGITS),
        "errors_count": len(quantitative.errors),
        "strengths_count": len(qualitative.strengths),
        "weaknesses_count": len(qualitative.weaknesses),
        "suggestions_count": len(qualitative.suggestions),
    }


def results_frame(results: Iterable[ExecutionResult]) -> pd.DataFrame:
    """Flatten results into the CSV column layout"""
    return pd.DataFrame([_csv_row(r) for r in results], columns=CSV_COLUMNS)
