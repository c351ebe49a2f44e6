"""
Result persistence

Individual results are written through as soon as they complete (one
directory per result under incremental/); the full run is saved at the end
(results.json, report.md and one CSV per model under run_<run_id>/).
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from llm_doc_bench.domain.constants import FRACTION_DIGITS
from llm_doc_bench.domain.entities import ExecutionResult
from llm_doc_bench.infrastructure.model_clients.base import file_safe_model_id
from llm_doc_bench.reporting import render_report, render_result_summary
from llm_doc_bench.use_cases.aggregation import results_frame

logger = logging.getLogger(__name__)

INCREMENTAL_DIR = "incremental"
RUN_DIR_PREFIX = "run_"

_UNSAFE_CHARS_RE = re.compile(r"[:.]")
_PATH_SEPARATORS_RE = re.compile(r"[\\/]")
_CSV_FLOAT_FORMAT = f"%.{FRACTION_DIGITS}f"


def new_run_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def _safe_name(value: str) -> str:
    return _PATH_SEPARATORS_RE.sub("_", value)


@dataclass
class RunArtifacts:
    """Files written for a completed run"""
    run_dir: Path
    json_path: Path
    report_path: Path
    csv_paths: dict[str, Path] = field(default_factory=dict)


class ResultStore:
    """Writes results below a results directory"""

    def __init__(self, results_dir: str | Path) -> None:
        self.results_dir = Path(results_dir)

    def result_dir(self, result: ExecutionResult) -> Path:
        timestamp = _UNSAFE_CHARS_RE.sub("-", result.timestamp)
        return self.results_dir / INCREMENTAL_DIR / f"{_safe_name(result.id)}_{timestamp}"

    def _write_result_files(self, result: ExecutionResult) -> Path:
        result_dir = self.result_dir(result)
        result_dir.mkdir(parents=True, exist_ok=True)
        (result_dir / "result.json").write_text(
            json.dumps(result.to_dict(), ensure_ascii=False, indent=2, default=str),
            encoding="utf-8",
        )
        (result_dir / "summary.md").write_text(render_result_summary(result), encoding="utf-8")
        results_frame([result]).to_csv(result_dir / "result.csv", index=False, float_format=_CSV_FLOAT_FORMAT)
        return result_dir

    async def write_result(self, result: ExecutionResult) -> Path | None:
        """
        Write one result immediately

        Returns:
            The result directory, or None if writing failed (logged, not raised)
        """
        try:
            result_dir = await asyncio.to_thread(self._write_result_files, result)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Error saving individual result %s: %s", result.id, e)
            return None
        logger.info("Individual result saved to %s", result_dir)
        return result_dir

    def save_run(self, run_id: str, results: list[ExecutionResult]) -> RunArtifacts:
        """
        Save all results of a run

        Args:
            run_id: Run identifier, used in directory and file names
            results: Successful results

        Returns:
            RunArtifacts with the written paths
        """
        run_dir = self.results_dir / f"{RUN_DIR_PREFIX}{run_id}"
        run_dir.mkdir(parents=True, exist_ok=True)

        json_path = run_dir / "results.json"
        json_path.write_text(
            json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2, default=str),
            encoding="utf-8",
        )
        logger.info("Results saved to %s", json_path)

        report_path = run_dir / "report.md"
        report_path.write_text(render_report(results), encoding="utf-8")
        logger.info("Report saved to %s", report_path)

        artifacts = RunArtifacts(run_dir=run_dir, json_path=json_path, report_path=report_path)

        by_model: dict[str, list[ExecutionResult]] = {}
        for result in results:
            by_model.setdefault(result.model, []).append(result)

        for model, model_results in by_model.items():
            csv_path = run_dir / f"{_safe_name(file_safe_model_id(model))}_results_{run_id}.csv"
            results_frame(model_results).to_csv(csv_path, index=False, float_format=_CSV_FLOAT_FORMAT)
            artifacts.csv_paths[model] = csv_path
            logger.info("Exported CSV for model %s to %s", model, csv_path)

        return artifacts
