"""
Correlation Browser

Looks up saved results across runs by model, document and prompt, and
compares groups of them.

Usage:
    python -m llm_doc_bench.correlations --list --model phi-3.1-mini-128k-instruct
    python -m llm_doc_bench.correlations --compare --id <id> --id <id>
    python -m llm_doc_bench.correlations --detail --id <id> --format json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import pandas as pd

from llm_doc_bench.domain.constants import METRIC_NAMES
from llm_doc_bench.infrastructure.persistence import RUN_DIR_PREFIX

logger = logging.getLogger(__name__)

CORRELATION_COLUMNS = [
    "correlation_id",
    "run_id",
    "id",
    "timestamp",
    "model",
    "document_id",
    "prompt_id",
    "prompt_base_name",
    "system_prompt_id",
    "assistant_prompt_id",
    *METRIC_NAMES,
    "errors_count",
]

SORT_FIELDS = ["timestamp", "model", "document_id", "prompt_id", *METRIC_NAMES]

# The markdown detail shows at most this much of the response
MAX_RESPONSE_PREVIEW = 1000


def correlation_id(record: dict) -> str:
    return f"{record['model']}__{record['document_id']}__{record['prompt_id']}__{record['timestamp']}"


def _flatten(run_id: str, record: dict) -> dict:
    quantitative = record.get("quantitative") or {}
    row = {
        "run_id": run_id,
        "id": record.get("id"),
        "timestamp": record.get("timestamp"),
        "model": record.get("model"),
        "document_id": record.get("document_id"),
        "prompt_id": record.get("prompt_id"),
        "prompt_base_name": record.get("prompt_base_name"),
        "system_prompt_id": record.get("system_prompt_id"),
        "assistant_prompt_id": record.get("assistant_prompt_id"),
        **{name: float(quantitative.get(name, 0.0)) for name in METRIC_NAMES},
        "errors_count": len(quantitative.get("errors") or []),
        "qualitative": record.get("qualitative") or {},
        "parsed_response": record.get("parsed_response"),
    }
    row["correlation_id"] = correlation_id(row)
    return row


def load_run_results(results_dir: str | Path) -> pd.DataFrame:
    """
    Load every run_*/results.json below results_dir

    Unreadable files are logged and skipped.

    Returns:
        One row per result, with a run_id column
    """
    results_dir = Path(results_dir)
    rows = []
    if results_dir.is_dir():
        for run_dir in sorted(results_dir.glob(f"{RUN_DIR_PREFIX}*")):
            json_path = run_dir / "results.json"
            if not json_path.is_file():
                continue
            run_id = run_dir.name[len(RUN_DIR_PREFIX):]
            try:
                records = json.loads(json_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.error("Error reading results file %s: %s", json_path, e)
                continue
            rows.extend(_flatten(run_id, record) for record in records)

    return pd.DataFrame(rows, columns=[*CORRELATION_COLUMNS, "qualitative", "parsed_response"])


def find_correlations(
    df: pd.DataFrame,
    model: str | None = None,
    document: str | None = None,
    prompt: str | None = None,
) -> pd.DataFrame:
    """Filter results by exact model, document and prompt id (None = any)"""
    mask = pd.Series(True, index=df.index)
    if model:
        mask &= df["model"] == model
    if document:
        mask &= df["document_id"] == document
    if prompt:
        mask &= df["prompt_id"] == prompt
    return df[mask]


def sort_correlations(df: pd.DataFrame, sort_by: str = "timestamp", sort_order: str = "desc") -> pd.DataFrame:
    if sort_by not in df.columns:
        raise ValueError(f"Cannot sort by '{sort_by}'. Valid fields: {', '.join(SORT_FIELDS)}")
    return df.sort_values(sort_by, ascending=(sort_order == "asc"), kind="stable")


def _group_stats(df: pd.DataFrame, column: str) -> dict[str, dict[str, Any]]:
    stats = {}
    for key, group in df.groupby(column, sort=False):
        stats[str(key)] = {
            "count": int(len(group)),
            "averages": {name: round(float(group[name].mean()), 4) for name in METRIC_NAMES},
        }
    return stats


def compare_correlations(df: pd.DataFrame, ids: list[str]) -> dict[str, Any]:
    """
    Group the selected results by model, document and prompt

    Args:
        df: Loaded results
        ids: Correlation ids; unknown ids are ignored

    Returns:
        {"correlations": DataFrame, "by_model": ..., "by_document": ..., "by_prompt": ...}
        where each group maps to {"count", "averages"}
    """
    selected = df[df["correlation_id"].isin(ids)]
    return {
        "correlations": selected,
        "by_model": _group_stats(selected, "model"),
        "by_document": _group_stats(selected, "document_id"),
        "by_prompt": _group_stats(selected, "prompt_id"),
    }


def format_table(df: pd.DataFrame) -> str:
    """Plain-text listing of results"""
    if df.empty:
        return "No correlations found."
    lines = [
        f"{'ID':<60} {'Run':<16} {'Overall':>8} {'Accuracy':>9} {'Complete':>9} {'Relevance':>10}",
        f"{'-'*60} {'-'*16} {'-'*8} {'-'*9} {'-'*9} {'-'*10}",
    ]
    for _, row in df.iterrows():
        lines.append(
            f"{row['correlation_id'][:60]:<60} {row['run_id']:<16} "
            f"{row['overall']:>8.2f} {row['accuracy']:>9.2f} "
            f"{row['completeness']:>9.2f} {row['relevance']:>10.2f}"
        )
    lines.append(f"\nTotal: {len(df)}")
    return "\n".join(lines)


def format_comparison(comparison: dict[str, Any]) -> str:
    """Plain-text comparison report"""
    lines = [
        "Comparison Report",
        "=================",
        "",
        f"Total correlations: {len(comparison['correlations'])}",
        "",
    ]
    for title, key in (("Models", "by_model"), ("Documents", "by_document"), ("Prompts", "by_prompt")):
        lines.append(f"{title}:")
        for name, stats in comparison[key].items():
            lines.append(f"  {name}: {stats['count']} correlations")
            averages = ", ".join(f"{metric}: {value:.2f}" for metric, value in stats["averages"].items())
            lines.append(f"    Average metrics: {averages}")
        lines.append("")
    return "\n".join(lines)


def format_detail(df: pd.DataFrame, cid: str) -> str:
    """Full information on one result"""
    matches = df[df["correlation_id"] == cid]
    if matches.empty:
        return f"Correlation not found: {cid}"
    row = matches.iloc[0]

    lines = [
        "Detailed Correlation Information",
        "================================",
        "",
        f"ID: {row['correlation_id']}",
        f"Run: {row['run_id']}",
        f"Model: {row['model']}",
        f"Document: {row['document_id']}",
        f"Prompt: {row['prompt_id']}",
        f"System prompt: {row['system_prompt_id'] or 'N/A'}",
        f"Assistant prompt: {row['assistant_prompt_id'] or 'N/A'}",
        f"Timestamp: {row['timestamp']}",
        "",
        "Metrics:",
    ]
    lines += [f"  {name}: {row[name]:.2f}" for name in METRIC_NAMES]

    qualitative = row["qualitative"] or {}
    for key in ("strengths", "weaknesses", "suggestions"):
        items = qualitative.get(key) or []
        if items:
            lines.append(f"\n{key.capitalize()}:")
            lines += [f"  - {item}" for item in items]

    response = row["parsed_response"]
    if response is not None:
        text = response if isinstance(response, str) else json.dumps(response, indent=2, ensure_ascii=False)
        lines += ["", "Response:", "```", text[:MAX_RESPONSE_PREVIEW], "```"]
        if len(text) > MAX_RESPONSE_PREVIEW:
            lines.append("(Response truncated, see the results file for the full response)")
    return "\n".join(lines)


def _to_records(df: pd.DataFrame) -> list[dict]:
    return json.loads(df.to_json(orient="records"))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Analyze relationships between models, documents, prompts and results",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--list", "-l", dest="mode", action="store_const", const="list", help="List results (default)")
    mode.add_argument("--compare", "-c", dest="mode", action="store_const", const="compare", help="Compare results")
    mode.add_argument("--detail", "-d", dest="mode", action="store_const", const="detail", help="Show one result")
    parser.set_defaults(mode="list")

    parser.add_argument("--results-dir", default="results", help="Results directory (default: results)")
    parser.add_argument("--model", default=None, help="Filter by model id")
    parser.add_argument("--file", dest="document", default=None, help="Filter by data file id")
    parser.add_argument("--prompt", default=None, help="Filter by prompt id")
    parser.add_argument("--id", dest="ids", action="append", default=[], help="Correlation id (repeatable)")
    parser.add_argument("--format", choices=["table", "json"], default="table", help="Output format")
    parser.add_argument("--sort-by", choices=SORT_FIELDS, default="timestamp", help="Sort field")
    parser.add_argument("--sort-order", choices=["asc", "desc"], default="desc", help="Sort order")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    df = load_run_results(args.results_dir)

    if args.mode == "list":
        listing = sort_correlations(
            find_correlations(df, model=args.model, document=args.document, prompt=args.prompt),
            args.sort_by,
            args.sort_order,
        )
        if args.format == "json":
            print(json.dumps(_to_records(listing), indent=2, ensure_ascii=False))
        else:
            print(format_table(listing))
        return 0

    if args.mode == "compare":
        if len(args.ids) < 2:
            print("Error: At least two correlation ids are required for comparison", file=sys.stderr)
            return 1
        comparison = compare_correlations(df, args.ids)
        if args.format == "json":
            payload = dict(comparison, correlations=_to_records(comparison["correlations"]))
            print(json.dumps(payload, indent=2, ensure_ascii=False))
        else:
            print(format_comparison(comparison))
        return 0

    if not args.ids:
        print("Error: --detail requires --id", file=sys.stderr)
        return 1
    if args.format == "json":
        print(json.dumps(_to_records(df[df["correlation_id"] == args.ids[0]]), indent=2, ensure_ascii=False))
    else:
        print(format_detail(df, args.ids[0]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
