"""
Model client base class and invocation errors

Defines the abstract base class inherited by all model clients and the error
types the scheduler treats as case failures.
"""

from abc import ABC, abstractmethod

from llm_doc_bench.domain.value_objects import ConversationPlan, GenerationOptions, ModelResponse


class ModelInvocationError(Exception):
    """Base class for failures while calling a model"""
    pass


class ModelTimeoutError(ModelInvocationError):
    """The model server did not answer within the configured timeout"""

    def __init__(self, model_name: str, timeout_seconds: float):
        super().__init__(f"Request to {model_name} timed out after {timeout_seconds:g}s")
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds


class ModelTransportError(ModelInvocationError):
    """Connection failure or non-2xx HTTP status"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ModelClient(ABC):
    """Abstract base class for model clients"""

    model_name: str

    @abstractmethod
    async def chat(self, plan: ConversationPlan, options: GenerationOptions) -> ModelResponse:
        """Send a conversation and retrieve the response"""
        pass

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Model ids served by the backend"""
        pass

    async def aclose(self) -> None:
        """Release network resources"""
        return None


def file_safe_model_id(model_name: str) -> str:
    """
    Filesystem-safe version of a model id

    For prefixed ids ("org/model") only the last path segment is kept, and of
    that only the part after the last ":" ("org/model:q4" -> "q4").
    """
    if not model_name:
        return "default"
    if "/" in model_name:
        return model_name.split("/")[-1].split(":")[-1]
    return model_name
