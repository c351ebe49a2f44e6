"""
Domain Constants

Centrally manages constants shared across the evaluation harness.
"""

# Default model list (used when DEFAULT_MODELS is not set)
DEFAULT_MODELS = [
    "phi-3.1-mini-128k-instruct",
]

# Default concurrency ceiling per model partition
DEFAULT_CONCURRENCY_LIMIT = 3

# Prompt file name prefixes mapped to their conversational role
ROLE_PREFIXES = {
    "system_": "system",
    "user_": "user",
    "assistant_": "assistant",
}

# Only files with exactly this suffix are loaded from the corpus directories
CORPUS_FILE_SUFFIX = ".txt"

# Generic messages used when no prompt fills a role slot
DEFAULT_SYSTEM_MESSAGE = (
    "You are an AI assistant analyzing data. "
    "Provide structured analysis based on the document text."
)
DEFAULT_USER_MESSAGE = "Please analyze this document."

# Number of decimal digits used for averages, CSV and report output
FRACTION_DIGITS = 4

# Placeholder for missing values in CSV output
NOT_AVAILABLE = "N/A"

# Metric names in display order
METRIC_NAMES = ["overall", "accuracy", "completeness", "relevance"]

# Default evaluation criteria: (alternate field names, description)
DEFAULT_EXPECTED_FIELDS = [
    (["main_points", "mainPoints", "key_points", "keyPoints"], "key points"),
    (["summary", "overview"], "summary"),
    (["analysis", "evaluation"], "analysis"),
    (["recommendations", "suggestions"], "recommendations"),
    (["details", "specifics"], "details"),
]

DEFAULT_RELEVANT_TERMS = [
    "analysis",
    "file",
    "text",
    "content",
    "information",
    "important",
    "key",
    "critical",
]

# Weights used by the default overall score
OVERALL_WEIGHTS = {"accuracy": 0.4, "completeness": 0.4, "relevance": 0.2}

# Name of the optional structured output schema file
RESPONSE_SCHEMA_FILE = "response_format.schema.json"
