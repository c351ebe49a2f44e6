"""
Evaluation Harness Configuration

Manages loading from environment variables and default values.
The resulting HarnessConfig is built once at process start and passed into
every component that needs it.
"""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path

from llm_doc_bench.domain.constants import DEFAULT_CONCURRENCY_LIMIT, DEFAULT_MODELS


def _env_bool(key: str, default: bool) -> bool:
    """Convert an environment variable to bool"""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to an integer.")


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to a number.")


def _env_str(key: str, default: str) -> str:
    """Get an environment variable as a string"""
    return os.environ.get(key, default)


def _env_str_list(key: str, default: list[str]) -> list[str]:
    """Convert an environment variable to a comma-separated list of strings"""
    val = os.environ.get(key)
    if val is None:
        return list(default)
    return [x.strip() for x in val.split(",") if x.strip()]


def _env_path(key: str, default: str) -> str:
    """Get an environment variable as an absolute path"""
    val = os.environ.get(key)
    if val is None:
        return default
    return str(Path(val).resolve())


@dataclass
class ServerConfig:
    """Model server connection configuration"""
    url: str = "http://127.0.0.1:1234"
    auth_username: str | None = None
    auth_password: str | None = None
    timeout_seconds: float = 900.0


@dataclass
class ModelConfig:
    """Models under test and their sampling parameters"""
    default_models: list[str] = field(default_factory=lambda: list(DEFAULT_MODELS))
    max_tokens: int = 30000
    temperature: float = 0.7
    top_p: float = 0.95


@dataclass
class DirectoryConfig:
    """Input and output directories"""
    prompts: str = "input/prompts/txt"
    data: str = "input/data"
    schemas: str = "input/schemas"
    evaluators: str = "input/evaluators"
    results: str = "results"


@dataclass
class PerformanceConfig:
    """Concurrency and caching configuration"""
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    caching_enabled: bool = False
    cache_dir: str = "cache"

    def __post_init__(self):
        if self.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1.")


@dataclass
class EvaluationConfig:
    """Evaluator selection and structured output"""
    evaluator: str = ""  # empty = built-in default evaluator
    use_structured_output_schema: bool = False


@dataclass
class NotificationConfig:
    """Slack webhook configuration"""
    slack_webhook_url: str | None = None
    timeout_seconds: float = 10.0


@dataclass
class HarnessConfig:
    """Overall evaluation harness configuration"""
    server: ServerConfig = field(default_factory=ServerConfig)
    models: ModelConfig = field(default_factory=ModelConfig)
    directories: DirectoryConfig = field(default_factory=DirectoryConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {"harness_config": asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "HarnessConfig":
        """Create from dictionary (handles presence/absence of harness_config key)"""
        config_data = data.get("harness_config", data)
        return cls(
            server=ServerConfig(**config_data.get("server", {})),
            models=ModelConfig(**config_data.get("models", {})),
            directories=DirectoryConfig(**config_data.get("directories", {})),
            performance=PerformanceConfig(**config_data.get("performance", {})),
            evaluation=EvaluationConfig(**config_data.get("evaluation", {})),
            notifications=NotificationConfig(**config_data.get("notifications", {})),
        )


def load_config() -> HarnessConfig:
    """
    Load configuration from environment variables

    Uses default values when environment variables are not set.

    Returns:
        HarnessConfig
    """
    defaults = DirectoryConfig()
    server = ServerConfig(
        url=_env_str("MODEL_SERVER_URL", "http://127.0.0.1:1234"),
        auth_username=os.environ.get("AUTH_USERNAME") or None,
        auth_password=os.environ.get("AUTH_PASSWORD") or None,
        timeout_seconds=_env_int("REQUEST_TIMEOUT_MS", 900000) / 1000,
    )
    models = ModelConfig(
        default_models=_env_str_list("DEFAULT_MODELS", DEFAULT_MODELS),
        max_tokens=_env_int("MAX_TOKENS", 30000),
        temperature=_env_float("TEMPERATURE", 0.7),
        top_p=_env_float("TOP_P", 0.95),
    )
    directories = DirectoryConfig(
        prompts=_env_path("INPUT_PROMPTS_DIR", defaults.prompts),
        data=_env_path("INPUT_DATA_DIR", defaults.data),
        schemas=_env_path("INPUT_SCHEMAS_DIR", defaults.schemas),
        evaluators=_env_path("INPUT_EVALUATORS_DIR", defaults.evaluators),
        results=_env_path("RESULTS_DIR", defaults.results),
    )
    performance = PerformanceConfig(
        concurrency_limit=_env_int("CONCURRENCY_LIMIT", DEFAULT_CONCURRENCY_LIMIT),
        caching_enabled=_env_bool("ENABLE_RESPONSE_CACHING", False),
        cache_dir=_env_path("CACHE_DIR", "cache"),
    )
    evaluation = EvaluationConfig(
        evaluator=_env_str("EVALUATOR", ""),
        use_structured_output_schema=_env_bool("USE_STRUCTURED_OUTPUT_SCHEMA", False),
    )
    notifications = NotificationConfig(
        slack_webhook_url=os.environ.get("SLACK_WEBHOOK_URL") or None,
        timeout_seconds=_env_float("SLACK_TIMEOUT_SECONDS", 10.0),
    )
    return HarnessConfig(
        server=server,
        models=models,
        directories=directories,
        performance=performance,
        evaluation=evaluation,
        notifications=notifications,
    )
