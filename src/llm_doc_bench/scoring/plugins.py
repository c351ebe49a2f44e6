"""
Evaluator registration and loading

The evaluator is selected once at process start:

- a registered name ("default")
- an import path ("package.module:attribute")
- a Python file ("path/to/evaluator.py" or "path/to/evaluator.py:attribute",
  attribute defaults to "evaluator")
- nothing configured: an evaluators directory holding quantitative.py and/or
  qualitative.py with evaluate_quantitative / evaluate_qualitative functions,
  otherwise the built-in DefaultEvaluator

The attribute may be an Evaluator instance, an Evaluator subclass, or a
zero-argument factory returning an Evaluator.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Callable

from llm_doc_bench.domain.value_objects import Evaluation, QualitativeAssessment, QuantitativeMetrics
from llm_doc_bench.scoring.evaluator import (
    DefaultEvaluator,
    EvaluationOptions,
    Evaluator,
    SafeEvaluator,
    normalize_response,
)

logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTE = "evaluator"

_REGISTRY: dict[str, Callable[[], Evaluator]] = {
    "default": DefaultEvaluator,
}


class EvaluatorLoadError(Exception):
    """Raised when a configured evaluator cannot be loaded"""
    pass


def register_evaluator(name: str, factory: Callable[[], Evaluator]) -> None:
    """Register an evaluator factory under a name"""
    _REGISTRY[name] = factory


def registered_evaluators() -> list[str]:
    return sorted(_REGISTRY)


def _import_file(path: Path) -> ModuleType:
    module_name = f"llm_doc_bench_plugin_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise EvaluatorLoadError(f"Cannot import evaluator file: {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise EvaluatorLoadError(f"Error loading evaluator file {path}: {e}") from e
    return module


def _coerce(obj: Any, source: str) -> Evaluator:
    """Turn an instance, class or factory into an Evaluator"""
    if isinstance(obj, Evaluator):
        return obj
    if isinstance(obj, type) and issubclass(obj, Evaluator):
        return obj()
    if callable(getattr(obj, "evaluate", None)) and not isinstance(obj, type):
        return obj
    if callable(obj):
        produced = obj()
        if isinstance(produced, Evaluator) or callable(getattr(produced, "evaluate", None)):
            return produced
    raise EvaluatorLoadError(f"{source} does not provide an Evaluator")


def _split_spec(spec: str) -> tuple[str, str | None]:
    # Windows drive letters ("C:\\...") are not attribute separators
    head, sep, tail = spec.rpartition(":")
    if not sep or not head or "\\" in tail or "/" in tail or len(head) == 1:
        return spec, None
    return head, tail


def _load_from_spec(spec: str) -> Evaluator:
    target, attribute = _split_spec(spec)

    if target.endswith(".py"):
        path = Path(target)
        if not path.is_file():
            raise EvaluatorLoadError(f"Evaluator file not found: {path}")
        module = _import_file(path)
        attribute = attribute or DEFAULT_ATTRIBUTE
    else:
        try:
            module = importlib.import_module(target)
        except ImportError as e:
            raise EvaluatorLoadError(f"Cannot import evaluator module '{target}': {e}") from e
        attribute = attribute or DEFAULT_ATTRIBUTE

    if not hasattr(module, attribute):
        raise EvaluatorLoadError(f"'{target}' has no attribute '{attribute}'")
    return _coerce(getattr(module, attribute), f"{target}:{attribute}")


class FunctionEvaluator(Evaluator):
    """
    Evaluator assembled from plain functions

    Each function receives the normalized response dict and the options and
    returns a dict (or the matching dataclass). Missing functions fall back to
    the default evaluator's corresponding half.
    """

    name = "functions"

    def __init__(
        self,
        quantitative_fn: Callable[[dict, EvaluationOptions], Any] | None = None,
        qualitative_fn: Callable[[dict, EvaluationOptions], Any] | None = None,
    ) -> None:
        self.quantitative_fn = quantitative_fn
        self.qualitative_fn = qualitative_fn
        self._default = DefaultEvaluator()

    def evaluate(self, value: Any, options: EvaluationOptions) -> Evaluation:
        result = normalize_response(value)

        if self.quantitative_fn is not None:
            quantitative = self.quantitative_fn(result, options)
            if isinstance(quantitative, dict):
                known = QuantitativeMetrics.__dataclass_fields__
                quantitative = QuantitativeMetrics(**{k: v for k, v in quantitative.items() if k in known})
        else:
            quantitative = self._default.quantitative(result, options)

        if self.qualitative_fn is not None:
            qualitative = self.qualitative_fn(result, options)
            if isinstance(qualitative, dict):
                known = QualitativeAssessment.__dataclass_fields__
                qualitative = QualitativeAssessment(**{k: v for k, v in qualitative.items() if k in known})
        else:
            qualitative = self._default.qualitative(result, options)

        return Evaluation(quantitative=quantitative, qualitative=qualitative)


def _load_from_directory(directory: Path) -> Evaluator | None:
    functions: dict[str, Callable | None] = {"quantitative": None, "qualitative": None}
    for kind in functions:
        path = directory / f"{kind}.py"
        if not path.is_file():
            continue
        module = _import_file(path)
        fn = getattr(module, f"evaluate_{kind}", None)
        if callable(fn):
            functions[kind] = fn
            logger.info("Loaded custom %s evaluator from %s", kind, path)
        else:
            logger.warning("%s does not define evaluate_%s; using the default", path, kind)

    if functions["quantitative"] is None and functions["qualitative"] is None:
        return None
    return FunctionEvaluator(functions["quantitative"], functions["qualitative"])


def load_evaluator(spec: str = "", evaluators_dir: str | Path | None = None) -> Evaluator:
    """
    Select the evaluator for this process

    Args:
        spec: Registered name, import path or Python file (see module docstring)
        evaluators_dir: Directory scanned for function-style evaluators when spec is empty

    Returns:
        The selected evaluator wrapped in SafeEvaluator

    Raises:
        EvaluatorLoadError: If the configured evaluator cannot be loaded
    """
    evaluator: Evaluator | None = None
    if spec:
        if spec in _REGISTRY:
            evaluator = _REGISTRY[spec]()
        else:
            evaluator = _load_from_spec(spec)
    elif evaluators_dir is not None and Path(evaluators_dir).is_dir():
        evaluator = _load_from_directory(Path(evaluators_dir))

    if evaluator is None:
        evaluator = DefaultEvaluator()

    logger.info("Using evaluator: %s", getattr(evaluator, "name", type(evaluator).__name__))
    return SafeEvaluator(evaluator)
