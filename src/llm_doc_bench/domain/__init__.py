"""
Domain Layer

Defines constants, entities, and value objects that form the core of the business logic.
Has no dependencies on external libraries.
"""

from llm_doc_bench.domain.constants import (
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_MODELS,
    DEFAULT_SYSTEM_MESSAGE,
    DEFAULT_USER_MESSAGE,
    FRACTION_DIGITS,
)
from llm_doc_bench.domain.entities import (
    CaseFailure,
    DocumentUnit,
    ExecutionResult,
    HealthCheckResult,
    PromptRole,
    PromptUnit,
    RunSummary,
    TestCase,
)
from llm_doc_bench.domain.value_objects import (
    ChatMessage,
    ConversationPlan,
    Evaluation,
    GenerationOptions,
    ModelResponse,
    QualitativeAssessment,
    QuantitativeMetrics,
)

__all__ = [
    # constants
    "DEFAULT_CONCURRENCY_LIMIT",
    "DEFAULT_MODELS",
    "DEFAULT_SYSTEM_MESSAGE",
    "DEFAULT_USER_MESSAGE",
    "FRACTION_DIGITS",
    # entities
    "CaseFailure",
    "DocumentUnit",
    "ExecutionResult",
    "HealthCheckResult",
    "PromptRole",
    "PromptUnit",
    "RunSummary",
    "TestCase",
    # value objects
    "ChatMessage",
    "ConversationPlan",
    "Evaluation",
    "GenerationOptions",
    "ModelResponse",
    "QualitativeAssessment",
    "QuantitativeMetrics",
]
