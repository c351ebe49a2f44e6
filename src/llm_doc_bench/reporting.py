"""
Markdown reports for run results and individual test results
"""

from __future__ import annotations

from datetime import datetime

from llm_doc_bench.domain.constants import FRACTION_DIGITS, METRIC_NAMES
from llm_doc_bench.domain.entities import ExecutionResult, RunSummary
from llm_doc_bench.use_cases.aggregation import average_by

_METRIC_HEADER = "| Overall Score | Accuracy | Completeness | Relevance |"
_METRIC_RULE = "|--------------|----------|--------------|-----------|"


def prompt_display_key(result: ExecutionResult) -> str:
    """Label combining the system/user/assistant prompt ids of a result"""
    parts = []
    if result.system_prompt_id:
        parts.append(f"System: {result.system_prompt_id}")
    if result.user_prompt_id:
        parts.append(f"User: {result.user_prompt_id}")
    if result.assistant_prompt_id:
        parts.append(f"Assistant: {result.assistant_prompt_id}")
    if not result.user_prompt_id:
        # Legacy prompts have no user prompt id of their own
        return f"Legacy: {result.prompt_id}"
    return " ".join(parts)


def _metric_cells(metrics: dict[str, float], digits: int) -> str:
    return " | ".join(f"{metrics[name]:.{digits}f}" for name in METRIC_NAMES)


def _display_averages(results: list[ExecutionResult]) -> dict[str, dict[str, float]]:
    groups: dict[str, list[ExecutionResult]] = {}
    for result in results:
        groups.setdefault(prompt_display_key(result), []).append(result)
    averages = {}
    for key, group in groups.items():
        averages[key] = {
            name: sum(getattr(r.quantitative, name) for r in group) / len(group)
            for name in METRIC_NAMES
        }
    return averages


def render_report(results: list[ExecutionResult], generated_at: datetime | None = None) -> str:
    """
    Markdown run report

    Sections: per-result summary table, model comparison and prompt
    comparison (averages over the results in each group).
    """
    generated_at = generated_at or datetime.now()
    lines = [
        "# Model Evaluation Report",
        "",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "## Summary",
        "",
        f"| Model | Prompt | Document {_METRIC_HEADER}",
        f"|-------|--------|----------{_METRIC_RULE}",
    ]
    for r in results:
        metrics = {name: getattr(r.quantitative, name) for name in METRIC_NAMES}
        lines.append(f"| {r.model} | {r.prompt_id} | {r.document_id} | {_metric_cells(metrics, 2)} |")

    lines += [
        "",
        "## Model Comparison",
        "",
        f"| Model {_METRIC_HEADER}",
        f"|-------{_METRIC_RULE}",
    ]
    for model, metrics in average_by(results, "model").items():
        lines.append(f"| {model} | {_metric_cells(metrics, FRACTION_DIGITS)} |")

    lines += [
        "",
        "## Prompt Comparison",
        "",
        f"| Prompt {_METRIC_HEADER}",
        f"|--------{_METRIC_RULE}",
    ]
    for key, metrics in _display_averages(results).items():
        lines.append(f"| {key} | {_metric_cells(metrics, 2)} |")

    return "\n".join(lines) + "\n"


def render_result_summary(result: ExecutionResult) -> str:
    """Short markdown summary of one test result"""
    q = result.quantitative
    return "\n".join([
        f"# Test Result: {result.id}",
        "",
        f"## Model: {result.model}",
        "",
        f"## Prompt: {result.prompt_base_name} ({result.prompt_role})",
        "",
        f"## Data File: {result.document_id}",
        "",
        "## Metrics",
        f"- Overall: {q.overall:.2f}",
        f"- Accuracy: {q.accuracy:.2f}",
        f"- Completeness: {q.completeness:.2f}",
        f"- Relevance: {q.relevance:.2f}",
        "",
        "## Timestamp",
        result.timestamp,
        "",
    ])


def render_console_summary(summary: RunSummary) -> str:
    """Plain-text run summary for the terminal"""
    lines = [
        f"  Run ID:     {summary.run_id}",
        f"  Total:      {summary.total}",
        f"  Successful: {summary.successful}",
        f"  Failed:     {summary.failed}",
        "",
        f"  {'Model':<40} {'Overall':>8} {'Accuracy':>9} {'Complete':>9} {'Relevance':>10}",
        f"  {'-'*40} {'-'*8} {'-'*9} {'-'*9} {'-'*10}",
    ]
    for model, m in summary.by_model.items():
        lines.append(
            f"  {model:<40} "
            f"{m['overall']:>8.4f} "
            f"{m['accuracy']:>9.4f} "
            f"{m['completeness']:>9.4f} "
            f"{m['relevance']:>10.4f}"
        )
    return "\n".join(lines)
