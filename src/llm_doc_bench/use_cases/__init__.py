"""
Use Cases Layer

Aggregates business logic and provides use cases called from the runner.
"""

from llm_doc_bench.use_cases.aggregation import (
    CSV_COLUMNS,
    average_by,
    overall_averages,
    results_frame,
    summarize_run,
)
from llm_doc_bench.use_cases.evaluation import (
    TestCaseProcessor,
    generation_options,
    load_response_schema,
    result_id,
)
from llm_doc_bench.use_cases.health_check import (
    NoModelsAvailableError,
    check_all_models,
    check_connection,
    check_model,
    resolve_available_models,
)
from llm_doc_bench.use_cases.scheduler import (
    BoundedScheduler,
    PartitionStats,
    ScheduleOutcome,
    partition_by_model,
)

__all__ = [
    # aggregation
    "CSV_COLUMNS",
    "average_by",
    "overall_averages",
    "results_frame",
    "summarize_run",
    # evaluation
    "TestCaseProcessor",
    "generation_options",
    "load_response_schema",
    "result_id",
    # health_check
    "NoModelsAvailableError",
    "check_all_models",
    "check_connection",
    "check_model",
    "resolve_available_models",
    # scheduler
    "BoundedScheduler",
    "PartitionStats",
    "ScheduleOutcome",
    "partition_by_model",
]
