"""
Domain Entities

Defines the primary data structures used in the evaluation process.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from llm_doc_bench.domain.value_objects import QualitativeAssessment, QuantitativeMetrics


class PromptRole(str, Enum):
    """Conversational role of a prompt fragment"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    LEGACY = "legacy"


@dataclass(frozen=True)
class PromptUnit:
    """One loaded prompt fragment"""
    id: str
    role: PromptRole
    base_name: str  # role prefix stripped; equals id for legacy prompts
    content: str


@dataclass(frozen=True)
class DocumentUnit:
    """One loaded document"""
    id: str
    content: str


@dataclass(frozen=True)
class TestCase:
    """One {model x prompt x document} combination"""
    __test__ = False  # not a pytest class

    model: str
    prompt_unit: PromptUnit
    document_unit: DocumentUnit

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.model, self.prompt_unit.id, self.document_unit.id)


@dataclass(frozen=True)
class ExecutionResult:
    """Scored outcome of one successfully completed test case"""
    id: str
    timestamp: str
    model: str
    prompt_id: str
    prompt_role: str
    prompt_base_name: str
    document_id: str
    quantitative: QuantitativeMetrics
    qualitative: QualitativeAssessment
    parsed_response: Any
    system_prompt_id: str | None = None
    user_prompt_id: str | None = None
    assistant_prompt_id: str | None = None
    latency_ms: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionResult":
        values = dict(data)
        values["quantitative"] = QuantitativeMetrics(**data.get("quantitative", {}))
        values["qualitative"] = QualitativeAssessment(**data.get("qualitative", {}))
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in values.items() if k in known})


@dataclass(frozen=True)
class CaseFailure:
    """A test case that raised instead of producing a result"""
    test_case: TestCase
    error_type: str
    message: str


@dataclass
class RunSummary:
    """Run-level statistics"""
    run_id: str
    total: int
    successful: int
    failed: int
    average_scores: dict[str, float] = field(default_factory=dict)
    by_model: dict[str, dict[str, float]] = field(default_factory=dict)
    by_prompt: dict[str, dict[str, float]] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        return self.successful / self.total if self.total else 0.0


@dataclass
class HealthCheckResult:
    """Model availability check result"""
    model_name: str
    success: bool
    latency_ms: int | None = None
    error: str | None = None
