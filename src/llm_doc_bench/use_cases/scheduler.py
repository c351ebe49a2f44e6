"""
Bounded Concurrency Scheduler

Runs every test case exactly once:
- test cases are partitioned by model, keeping generation order
- partitions run one after another (model N+1 starts after model N drains)
- within a partition a fixed pool of workers pulls from a shared queue and a
  counting semaphore of size `limit` gates admission, so a finished case frees
  its slot immediately
- an exception in one case is recorded as a failure and never affects the
  others
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable

from llm_doc_bench.domain.constants import DEFAULT_CONCURRENCY_LIMIT
from llm_doc_bench.domain.entities import CaseFailure, ExecutionResult, TestCase

logger = logging.getLogger(__name__)

ProcessCase = Callable[[TestCase, str], Awaitable["ExecutionResult | None"]]

_MAX_ERROR_LENGTH = 100


@dataclass
class PartitionStats:
    """Per-model execution statistics"""
    model: str
    total: int
    successful: int
    failed: int
    elapsed_seconds: float
    peak_in_flight: int


@dataclass
class ScheduleOutcome:
    """Everything a scheduler run produced"""
    results: list[ExecutionResult] = field(default_factory=list)
    failures: list[CaseFailure] = field(default_factory=list)
    partitions: list[PartitionStats] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results) + len(self.failures)


def partition_by_model(test_cases: Iterable[TestCase]) -> dict[str, list[TestCase]]:
    """Group test cases by model, preserving first-seen model order and case order"""
    partitions: dict[str, list[TestCase]] = {}
    for test_case in test_cases:
        partitions.setdefault(test_case.model, []).append(test_case)
    return partitions


def _short_error(error: BaseException) -> str:
    message = str(error) or type(error).__name__
    if len(message) > _MAX_ERROR_LENGTH:
        return f"{message[:_MAX_ERROR_LENGTH]}..."
    return message


class BoundedScheduler:
    """Sliding-window scheduler with a per-model concurrency ceiling"""

    def __init__(self, process_case: ProcessCase, limit: int = DEFAULT_CONCURRENCY_LIMIT) -> None:
        """
        Args:
            process_case: Coroutine function (test_case, test_id) -> result; None counts as a failure
            limit: Maximum number of in-flight cases per model
        """
        if limit < 1:
            raise ValueError("limit must be at least 1.")
        self.process_case = process_case
        self.limit = limit
        self.in_flight = 0
        self.peak_in_flight = 0

    async def run(self, test_cases: Iterable[TestCase]) -> ScheduleOutcome:
        """
        Execute all test cases

        Returns:
            ScheduleOutcome with successful results, failures and per-model stats
        """
        outcome = ScheduleOutcome()
        partitions = partition_by_model(test_cases)
        total_cases = sum(len(cases) for cases in partitions.values())
        logger.info(
            "Starting test execution: %d test cases across %d models (concurrency limit %d)",
            total_cases, len(partitions), self.limit,
        )

        for index, (model, cases) in enumerate(partitions.items(), start=1):
            logger.info("Processing model (%d/%d): %s, %d test cases", index, len(partitions), model, len(cases))
            self.peak_in_flight = 0
            start_time = time.monotonic()

            results, failures = await self.run_partition(cases)

            elapsed = time.monotonic() - start_time
            outcome.results.extend(results)
            outcome.failures.extend(failures)
            outcome.partitions.append(PartitionStats(
                model=model,
                total=len(cases),
                successful=len(results),
                failed=len(failures),
                elapsed_seconds=elapsed,
                peak_in_flight=self.peak_in_flight,
            ))
            logger.info(
                "Model %s completed in %.2f minutes: %d/%d tests passed",
                model, elapsed / 60, len(results), len(cases),
            )

        return outcome

    async def run_partition(self, cases: list[TestCase]) -> tuple[list[ExecutionResult], list[CaseFailure]]:
        """Run one model's cases with at most `limit` in flight"""
        results: list[ExecutionResult] = []
        failures: list[CaseFailure] = []
        if not cases:
            return results, failures

        queue: asyncio.Queue[tuple[str, TestCase]] = asyncio.Queue()
        for position, test_case in enumerate(cases, start=1):
            queue.put_nowait((f"{position}/{len(cases)}", test_case))
        semaphore = asyncio.Semaphore(self.limit)

        async def worker() -> None:
            while True:
                try:
                    test_id, test_case = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                async with semaphore:
                    self.in_flight += 1
                    self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                    try:
                        result = await self.process_case(test_case, test_id)
                    except Exception as e:
                        failures.append(CaseFailure(test_case, type(e).__name__, str(e)))
                        model, prompt_id, document_id = test_case.key
                        logger.error(
                            "TEST %s FAILED | model=%s prompt=%s file=%s | %s: %s",
                            test_id, model, prompt_id, document_id, type(e).__name__, _short_error(e),
                        )
                    else:
                        if result is None:
                            failures.append(CaseFailure(test_case, "NoResult", "test case produced no result"))
                        else:
                            results.append(result)
                    finally:
                        self.in_flight -= 1
                        queue.task_done()

        workers = [asyncio.create_task(worker()) for _ in range(min(self.limit, len(cases)))]
        await asyncio.gather(*workers)
        return results, failures
