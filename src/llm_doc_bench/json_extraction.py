"""
JSON Extraction & Repair

Converts free-form model output into structured data. Strategies are tried
in order, from cheapest/safest to most invasive; the first one that yields a
value wins:

1. DIRECT_PARSE      - the whole text is JSON
2. FENCED_OBJECT     - first-to-last brace span, code fences stripped
3. FENCED_ARRAY      - first-to-last bracket span
4. REPAIRED_REPARSE  - quote/trailing-comma/comment repairs, then brace span
5. RAW_FALLBACK      - the original text, unchanged

extract() never raises.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Callable

from llm_doc_bench.domain.value_objects import ModelResponse

logger = logging.getLogger(__name__)


class ExtractionStrategy(str, Enum):
    DIRECT_PARSE = "direct_parse"
    FENCED_OBJECT = "fenced_object"
    FENCED_ARRAY = "fenced_array"
    REPAIRED_REPARSE = "repaired_reparse"
    RAW_FALLBACK = "raw_fallback"


# Returned by a strategy that found nothing; None is a valid JSON value
NO_MATCH = object()

_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
_FENCE_RE = re.compile(r"^```(?:json)?[ \t]*$\n?|\n?^```[ \t]*$", re.MULTILINE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fence lines (```json / ```)"""
    return _FENCE_RE.sub("", text)


def repair_json_text(text: str) -> str:
    """Apply the textual repairs for near-JSON output"""
    fixed = text.replace("'", '"')
    fixed = _TRAILING_COMMA_RE.sub(r"\1", fixed)
    fixed = _LINE_COMMENT_RE.sub("", fixed)
    return fixed


def parse_direct(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return NO_MATCH


def parse_fenced_object(text: str) -> Any:
    match = _OBJECT_RE.search(text)
    if not match:
        return NO_MATCH
    try:
        return json.loads(strip_code_fences(match.group(0)))
    except json.JSONDecodeError as e:
        logger.warning("Found JSON-like pattern but failed to parse: %s", e)
        return NO_MATCH


def parse_fenced_array(text: str) -> Any:
    match = _ARRAY_RE.search(text)
    if not match:
        return NO_MATCH
    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("Found array-like pattern but failed to parse: %s", e)
        return NO_MATCH
    return value if isinstance(value, list) else NO_MATCH


def parse_repaired(text: str) -> Any:
    fixed = repair_json_text(text)
    match = _OBJECT_RE.search(fixed)
    if not match:
        return NO_MATCH
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse after fixing common issues: %s", e)
        return NO_MATCH


STRATEGIES: list[tuple[ExtractionStrategy, Callable[[str], Any]]] = [
    (ExtractionStrategy.DIRECT_PARSE, parse_direct),
    (ExtractionStrategy.FENCED_OBJECT, parse_fenced_object),
    (ExtractionStrategy.FENCED_ARRAY, parse_fenced_array),
    (ExtractionStrategy.REPAIRED_REPARSE, parse_repaired),
]


def extract_with_strategy(text: str) -> tuple[Any, ExtractionStrategy]:
    """
    Extract structured data and report which strategy produced it

    Args:
        text: Raw model output

    Returns:
        (value, strategy); value is the raw text for RAW_FALLBACK
    """
    if not isinstance(text, str):
        text = "" if text is None else str(text)

    for strategy, parse in STRATEGIES:
        try:
            value = parse(text)
        except Exception as e:  # a strategy must never abort the chain
            logger.warning("Extraction strategy %s failed: %s", strategy.value, e)
            continue
        if value is not NO_MATCH:
            return value, strategy

    logger.warning("All JSON parsing attempts failed, returning raw text")
    return text, ExtractionStrategy.RAW_FALLBACK


def extract(text: str) -> Any:
    """Structured value parsed from text, or the text itself"""
    value, _ = extract_with_strategy(text)
    return value


def response_text(response: ModelResponse) -> str:
    """Text content of a model response"""
    return response.content or ""
