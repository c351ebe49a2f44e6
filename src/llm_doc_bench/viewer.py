"""
llm-doc-bench Result Viewer

Minimal Streamlit dashboard for browsing saved runs.
Displays model and prompt comparisons and the filtered result table.

Usage:
    pip install -e ".[viewer]"
    streamlit run src/llm_doc_bench/viewer.py
    streamlit run src/llm_doc_bench/viewer.py -- --results-dir results

Requires the package to be installed (e.g. via ``pip install -e .``).
"""

from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from llm_doc_bench.correlations import find_correlations, load_run_results
from llm_doc_bench.domain.constants import METRIC_NAMES

# -- Colors --
METRIC_COLORS = {
    "overall": "#1a73e8",
    "accuracy": "#e8710a",
    "completeness": "#34a853",
    "relevance": "#9334e6",
}

ALL = "all"


def _short_model_name(name: str) -> str:
    """Shorten model name for display."""
    parts = name.split("/")
    return parts[-1] if len(parts) > 1 else name


def _render_comparison(df: pd.DataFrame, column: str, title: str) -> None:
    """Grouped bar chart of the mean metrics per group."""
    st.header(title)

    means = df.groupby(column, sort=False)[METRIC_NAMES].mean()
    labels = [_short_model_name(str(k)) if column == "model" else str(k) for k in means.index]

    fig = go.Figure()
    for metric in METRIC_NAMES:
        fig.add_trace(go.Bar(
            x=labels,
            y=means[metric],
            name=metric.capitalize(),
            marker_color=METRIC_COLORS[metric],
        ))

    fig.update_layout(
        barmode="group",
        yaxis_title="Score",
        yaxis_range=[0, 1.05],
        legend_title="Metric",
        template="plotly_white",
        height=420,
    )
    st.plotly_chart(fig, use_container_width=True)


def _render_results_table(df: pd.DataFrame) -> None:
    """Render the result table."""
    st.header("Results")

    display_cols = ["run_id", "model", "prompt_id", "document_id", *METRIC_NAMES, "errors_count", "timestamp"]
    styled = df[display_cols].copy()
    styled["model"] = styled["model"].apply(_short_model_name)
    styled = styled.rename(columns={
        "run_id": "Run",
        "model": "Model",
        "prompt_id": "Prompt",
        "document_id": "Document",
        "errors_count": "Errors",
    })
    st.dataframe(styled, use_container_width=True, hide_index=True)


def _select(label: str, values: pd.Series) -> str | None:
    options = [ALL] + sorted(v for v in values.dropna().unique())
    choice = st.sidebar.selectbox(label, options, index=0)
    return None if choice == ALL else choice


def main() -> None:
    # Parse --results-dir from Streamlit args (after --)
    parser = argparse.ArgumentParser()
    parser.add_argument("--results-dir", default="results")
    args, _ = parser.parse_known_args()

    results_dir = Path(args.results_dir)

    st.set_page_config(page_title="llm-doc-bench", layout="wide")
    st.title("llm-doc-bench Results")

    if not results_dir.exists():
        st.error(f"Results directory not found: `{results_dir}`")
        st.info("Run the benchmark first:\n```\nllm-doc-bench\n```")
        return

    df = load_run_results(results_dir)
    if df.empty:
        st.warning(f"No run results found in `{results_dir}/`")
        st.info("Run the benchmark first:\n```\nllm-doc-bench\n```")
        return

    # Sidebar filters
    run_ids = sorted(df["run_id"].unique(), reverse=True)
    selected_run = st.sidebar.selectbox("Run", [ALL] + run_ids, index=1 if run_ids else 0)
    if selected_run != ALL:
        df = df[df["run_id"] == selected_run]

    df = find_correlations(
        df,
        model=_select("Model", df["model"]),
        document=_select("Document", df["document_id"]),
        prompt=_select("Prompt", df["prompt_id"]),
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(f"**Models**: {df['model'].nunique()}")
    st.sidebar.markdown(f"**Prompts**: {df['prompt_id'].nunique()}")
    st.sidebar.markdown(f"**Documents**: {df['document_id'].nunique()}")
    st.sidebar.markdown(f"**Results**: {len(df)} rows")

    if df.empty:
        st.warning("No results match the selected filters.")
        return

    _render_comparison(df, "model", "Model Comparison")
    _render_comparison(df, "prompt_base_name", "Prompt Comparison")
    _render_results_table(df)


if __name__ == "__main__":
    main()
