"""
llm-doc-bench CLI Runner

Runs every {model x prompt x document} combination against the configured
model server, scores the responses and saves the results.

Usage:
    python -m llm_doc_bench.runner
    python -m llm_doc_bench.runner --models phi-3.1-mini-128k-instruct,mistral-7b-instruct-v0.2 --concurrency 5
    python -m llm_doc_bench.runner --check-connection

Settings come from the environment (and .env); flags override them.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from functools import partial

from dotenv import load_dotenv

from llm_doc_bench.corpus_loader import CorpusError, generate_test_cases, load_documents, load_prompts
from llm_doc_bench.domain.constants import FRACTION_DIGITS
from llm_doc_bench.harness_config import HarnessConfig, load_config
from llm_doc_bench.infrastructure.model_clients import create_client
from llm_doc_bench.infrastructure.notifications import SlackNotifier
from llm_doc_bench.infrastructure.persistence import ResultStore, new_run_id
from llm_doc_bench.reporting import render_console_summary
from llm_doc_bench.response_cache import ResponseCache
from llm_doc_bench.scoring.evaluator import EvaluationOptions
from llm_doc_bench.scoring.plugins import EvaluatorLoadError, load_evaluator
from llm_doc_bench.use_cases.aggregation import results_frame, summarize_run
from llm_doc_bench.use_cases.evaluation import TestCaseProcessor, generation_options, load_response_schema
from llm_doc_bench.use_cases.health_check import (
    NoModelsAvailableError,
    check_connection,
    resolve_available_models,
)
from llm_doc_bench.use_cases.scheduler import BoundedScheduler

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="llm-doc-bench: Evaluate LLM document-analysis prompts",
    )
    parser.add_argument(
        "--models",
        default=None,
        help="Comma-separated list of model names (default: DEFAULT_MODELS)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum concurrent requests per model (default: CONCURRENCY_LIMIT or 3)",
    )
    parser.add_argument("--prompts-dir", default=None, help="Prompt directory (default: INPUT_PROMPTS_DIR)")
    parser.add_argument("--data-dir", default=None, help="Document directory (default: INPUT_DATA_DIR)")
    parser.add_argument("--results-dir", default=None, help="Results directory (default: RESULTS_DIR)")
    parser.add_argument(
        "--cache",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable the response cache (default: ENABLE_RESPONSE_CACHING)",
    )
    parser.add_argument("--clear-cache", action="store_true", help="Delete cached responses before running")
    parser.add_argument(
        "--evaluator",
        default=None,
        help="Evaluator name, import path (pkg.module:attr) or Python file (default: EVALUATOR)",
    )
    parser.add_argument(
        "--check-connection",
        action="store_true",
        help="Test the models and chat endpoints, then exit",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)


def apply_overrides(config: HarnessConfig, args: argparse.Namespace) -> HarnessConfig:
    """Overlay command line flags on the environment configuration"""
    models = config.models
    if args.models:
        models = replace(models, default_models=[m.strip() for m in args.models.split(",") if m.strip()])

    directories = config.directories
    if args.prompts_dir:
        directories = replace(directories, prompts=args.prompts_dir)
    if args.data_dir:
        directories = replace(directories, data=args.data_dir)
    if args.results_dir:
        directories = replace(directories, results=args.results_dir)

    performance = config.performance
    if args.concurrency is not None:
        performance = replace(performance, concurrency_limit=args.concurrency)
    if args.cache is not None:
        performance = replace(performance, caching_enabled=args.cache)

    evaluation = config.evaluation
    if args.evaluator:
        evaluation = replace(evaluation, evaluator=args.evaluator)

    return replace(
        config,
        models=models,
        directories=directories,
        performance=performance,
        evaluation=evaluation,
    )


async def run_connection_check(config: HarnessConfig) -> int:
    make_client = partial(create_client, config=config)
    model_name = config.models.default_models[0] if config.models.default_models else "default"

    print(f"\n=== Connection Test: {config.server.url} ===\n")
    print(f"  Model: {model_name}")
    served, result = await check_connection(model_name, make_client)
    print(f"  Available models: {', '.join(served) or 'None found'}")
    if result.success:
        print(f"  Chat completions: OK ({result.latency_ms}ms)")
        print()
        return 0
    print("  Chat completions: FAILED")
    print(f"    Error: {result.error}")
    print()
    return 1


async def run_benchmark(config: HarnessConfig) -> int:
    """
    Execute a full benchmark run

    Returns:
        Process exit status (0 = run completed, 1 = fatal error)
    """
    make_client = partial(create_client, config=config)
    notifier = SlackNotifier(config.notifications.slack_webhook_url, config.notifications.timeout_seconds)
    models = config.models.default_models

    try:
        # Step 1: Evaluator (selected once for the whole run)
        evaluator = load_evaluator(config.evaluation.evaluator, config.directories.evaluators)

        # Step 2: Model availability
        available_models = await resolve_available_models(models, make_client)
        print(f"  Models to test: {', '.join(available_models)}\n")

        # Step 3: Corpus
        print("=== Loading corpus ===\n")
        prompts = load_prompts(config.directories.prompts)
        if not prompts:
            raise CorpusError(f"No prompts found in {config.directories.prompts}. Please add prompt files.")
        documents = load_documents(config.directories.data)
        if not documents:
            raise CorpusError(f"No documents found in {config.directories.data}. Please add data files.")
        print(f"  Prompts:   {len(prompts)}")
        print(f"  Documents: {len(documents)}")
    except (CorpusError, EvaluatorLoadError, NoModelsAvailableError) as e:
        print(f"ERROR: {e}")
        await notifier.send_error(
            {"models": ", ".join(models), "error_type": type(e).__name__},
            e,
        )
        return 1

    test_cases = generate_test_cases(available_models, prompts, documents)
    run_id = new_run_id()
    print(f"  Test cases: {len(test_cases)}")
    print(f"  Run ID:     {run_id}")
    print()

    cache = ResponseCache(config.performance.cache_dir, enabled=config.performance.caching_enabled)
    if config.performance.caching_enabled:
        print(f"  Response caching enabled ({config.performance.cache_dir})\n")

    response_schema = None
    if config.evaluation.use_structured_output_schema:
        response_schema = load_response_schema(config.directories.schemas)

    store = ResultStore(config.directories.results)
    processor = TestCaseProcessor(
        client_factory=make_client,
        prompts=prompts,
        cache=cache,
        evaluator=evaluator,
        options=generation_options(config, response_schema),
        evaluation_options=EvaluationOptions.defaults(),
        sink=store,
    )

    # Step 4: Run
    print(f"=== Running Tests ({len(test_cases)} total, concurrency {config.performance.concurrency_limit}) ===\n")
    scheduler = BoundedScheduler(processor, limit=config.performance.concurrency_limit)
    try:
        outcome = await scheduler.run(test_cases)
    finally:
        await processor.aclose()

    # Step 5: Aggregate and save
    summary = summarize_run(run_id, outcome.results, total=len(test_cases))
    try:
        artifacts = store.save_run(run_id, outcome.results)
    except OSError as e:
        logger.error("Error saving results for run %s: %s", run_id, e)
        print(f"\nERROR: Could not save run results: {e}")
        artifacts = None

    print("\n=== Summary ===\n")
    print(render_console_summary(summary))
    print()
    if outcome.failures:
        print("=== Failed Tests ===\n")
        for failure in outcome.failures:
            model, prompt_id, document_id = failure.test_case.key
            print(f"  {model} | {prompt_id} | {document_id} | {failure.error_type}: {failure.message[:100]}")
        print()

    if artifacts is not None:
        print("=== Output ===\n")
        print(f"  Results: {artifacts.json_path}")
        print(f"  Report:  {artifacts.report_path}")
        for model, path in artifacts.csv_paths.items():
            print(f"  CSV ({model}): {path}")
        print()

    # Step 6: Slack
    csv_content = None
    if outcome.results:
        csv_content = results_frame(outcome.results).to_csv(index=False, float_format=f"%.{FRACTION_DIGITS}f")
    await notifier.send_run_summary(summary, csv_content)
    return 0


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = apply_overrides(load_config(), args)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if args.clear_cache:
        removed = ResponseCache(config.performance.cache_dir).clear()
        print(f"Cleared {removed} cached responses from {config.performance.cache_dir}")

    if args.check_connection:
        sys.exit(asyncio.run(run_connection_check(config)))

    sys.exit(asyncio.run(run_benchmark(config)))


if __name__ == "__main__":
    main()
