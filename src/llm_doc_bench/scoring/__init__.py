"""
Scoring sub-package

Provides the Evaluator interface, the default evaluator and plugin loading.
"""

from llm_doc_bench.scoring.evaluator import (
    DefaultEvaluator,
    EvaluationOptions,
    Evaluator,
    ExpectedField,
    SafeEvaluator,
    error_evaluation,
    normalize_response,
)
from llm_doc_bench.scoring.plugins import (
    EvaluatorLoadError,
    FunctionEvaluator,
    load_evaluator,
    register_evaluator,
    registered_evaluators,
)

__all__ = [
    # evaluators
    "DefaultEvaluator",
    "EvaluationOptions",
    "Evaluator",
    "ExpectedField",
    "SafeEvaluator",
    "error_evaluation",
    "normalize_response",
    # plugins
    "EvaluatorLoadError",
    "FunctionEvaluator",
    "load_evaluator",
    "register_evaluator",
    "registered_evaluators",
]
