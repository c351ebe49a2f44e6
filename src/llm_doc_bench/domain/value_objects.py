"""
Domain Value Objects

Defines immutable data structures representing values such as conversation
messages, model responses and evaluation metrics.
"""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class ChatMessage:
    """Single role-tagged chat message"""
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ConversationPlan:
    """
    Ordered message sequence submitted to a model for one test case.

    source_prompts maps each filled role to the prompt id that supplied it
    (None when a generic default message was used).
    """
    messages: tuple[ChatMessage, ...]
    source_prompts: dict[str, str | None] = field(default_factory=dict)

    @property
    def roles(self) -> list[str]:
        return [m.role for m in self.messages]

    def content_for(self, role: str) -> str | None:
        for message in self.messages:
            if message.role == role:
                return message.content
        return None

    def to_messages(self) -> list[dict[str, str]]:
        """Messages in the OpenAI chat format"""
        return [m.to_dict() for m in self.messages]


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling parameters passed to the model adapter"""
    temperature: float = 0.7
    max_tokens: int = 30000
    top_p: float = 0.95
    response_schema: dict | None = None


@dataclass
class ModelResponse:
    """Model response"""
    content: str
    latency_ms: int
    model_name: str
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ModelResponse":
        return cls(
            content=data["content"],
            latency_ms=int(data.get("latency_ms", 0)),
            model_name=data["model_name"],
            input_tokens=int(data.get("input_tokens", 0)),
            output_tokens=int(data.get("output_tokens", 0)),
            finish_reason=data.get("finish_reason"),
        )


@dataclass
class QuantitativeMetrics:
    """Numeric scores in the range 0.0-1.0"""
    accuracy: float = 0.0
    completeness: float = 0.0
    relevance: float = 0.0
    overall: float = 0.0
    errors: list[str] = field(default_factory=list)


@dataclass
class QualitativeAssessment:
    """Free-text assessment of a response"""
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class Evaluation:
    """Evaluator output (quantitative + qualitative)"""
    quantitative: QuantitativeMetrics = field(default_factory=QuantitativeMetrics)
    qualitative: QualitativeAssessment = field(default_factory=QualitativeAssessment)
