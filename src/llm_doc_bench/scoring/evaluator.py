"""
Response evaluators

The Evaluator interface turns an extracted response into quantitative
metrics and a qualitative assessment. Evaluators must never raise; failures
are reported through QuantitativeMetrics.errors.
"""

from __future__ import annotations

import json
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from llm_doc_bench.domain.constants import (
    DEFAULT_EXPECTED_FIELDS,
    DEFAULT_RELEVANT_TERMS,
    OVERALL_WEIGHTS,
)
from llm_doc_bench.domain.value_objects import (
    Evaluation,
    QualitativeAssessment,
    QuantitativeMetrics,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpectedField:
    """A field the response should contain under any of its alternate names"""
    alternate_names: tuple[str, ...]
    description: str

    def present_in(self, result: dict) -> bool:
        return any(name in result for name in self.alternate_names)


@dataclass
class EvaluationOptions:
    """Evaluation criteria and optional scoring hooks"""
    expected_fields: list[ExpectedField] = field(default_factory=list)
    relevant_terms: list[str] = field(default_factory=list)
    accuracy_fn: Callable[[dict, "EvaluationOptions"], float] | None = None
    overall_fn: Callable[[float, float, float, "EvaluationOptions"], float] | None = None
    assessment_fn: Callable[[dict, "EvaluationOptions"], dict | None] | None = None

    @classmethod
    def defaults(cls) -> "EvaluationOptions":
        return cls(
            expected_fields=[
                ExpectedField(alternate_names=tuple(names), description=description)
                for names, description in DEFAULT_EXPECTED_FIELDS
            ],
            relevant_terms=list(DEFAULT_RELEVANT_TERMS),
        )


def normalize_response(value: Any) -> dict:
    """
    Coerce an extracted response into a dictionary

    JSON strings are parsed; anything that is not an object ends up as
    {"raw_text": value}.
    """
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {"raw_text": value}
        if isinstance(parsed, dict):
            return parsed
    return {"raw_text": value}


def error_evaluation(error: BaseException | str) -> Evaluation:
    """Zeroed metrics carrying a single error entry"""
    message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
    return Evaluation(
        quantitative=QuantitativeMetrics(errors=[message]),
        qualitative=QualitativeAssessment(
            weaknesses=["Error processing the response format"],
            suggestions=["Ensure response is properly formatted as requested"],
        ),
    )


class Evaluator(ABC):
    """Pluggable response evaluator"""

    name: str = "evaluator"

    @abstractmethod
    def evaluate(self, value: Any, options: EvaluationOptions) -> Evaluation:
        """Score an extracted response"""
        pass


class DefaultEvaluator(Evaluator):
    """
    Field-presence and term-relevance evaluator

    - completeness: share of expected fields present
    - relevance: share of relevant terms found in the serialized response
    - accuracy: mean of completeness and relevance
    - overall: 0.4 accuracy + 0.4 completeness + 0.2 relevance
    """

    name = "default"

    def evaluate(self, value: Any, options: EvaluationOptions) -> Evaluation:
        result = normalize_response(value)
        return Evaluation(
            quantitative=self.quantitative(result, options),
            qualitative=self.qualitative(result, options),
        )

    def quantitative(self, result: dict, options: EvaluationOptions) -> QuantitativeMetrics:
        metrics = QuantitativeMetrics()
        try:
            if options.expected_fields:
                present = sum(1 for f in options.expected_fields if f.present_in(result))
                metrics.completeness = present / len(options.expected_fields)

            if options.relevant_terms:
                text = json.dumps(result, ensure_ascii=False, default=str).lower()
                found = sum(1 for term in options.relevant_terms if term.lower() in text)
                metrics.relevance = found / len(options.relevant_terms)

            if options.accuracy_fn is not None:
                metrics.accuracy = float(options.accuracy_fn(result, options))
            else:
                metrics.accuracy = (metrics.completeness + metrics.relevance) / 2

            if options.overall_fn is not None:
                metrics.overall = float(options.overall_fn(
                    metrics.accuracy, metrics.completeness, metrics.relevance, options,
                ))
            else:
                metrics.overall = (
                    metrics.accuracy * OVERALL_WEIGHTS["accuracy"]
                    + metrics.completeness * OVERALL_WEIGHTS["completeness"]
                    + metrics.relevance * OVERALL_WEIGHTS["relevance"]
                )
        except Exception as e:
            logger.warning("Error in quantitative evaluation: %s", e)
            metrics.errors.append(f"{type(e).__name__}: {e}")
        return metrics

    def qualitative(self, result: dict, options: EvaluationOptions) -> QualitativeAssessment:
        assessment = QualitativeAssessment()
        try:
            if options.assessment_fn is not None:
                custom = options.assessment_fn(result, options)
                if custom:
                    return QualitativeAssessment(
                        strengths=list(custom.get("strengths", [])),
                        weaknesses=list(custom.get("weaknesses", [])),
                        suggestions=list(custom.get("suggestions", [])),
                    )

            for expected in options.expected_fields:
                if expected.present_in(result):
                    assessment.strengths.append(f"Contains {expected.description}")
                else:
                    assessment.weaknesses.append(f"Missing {expected.description}")

            if assessment.weaknesses:
                assessment.suggestions.append("Ensure all expected elements are included in the response")
            if len(assessment.strengths) < math.ceil(len(options.expected_fields) / 2):
                assessment.suggestions.append("Provide more comprehensive information in the response")
        except Exception as e:
            logger.warning("Error in qualitative evaluation: %s", e)
            assessment.weaknesses.append("Error processing the response format")
            assessment.suggestions.append("Ensure response is properly formatted as requested")
        return assessment


class SafeEvaluator(Evaluator):
    """Wraps any evaluator so that an exception becomes an error entry"""

    def __init__(self, inner: Evaluator) -> None:
        self.inner = inner
        self.name = getattr(inner, "name", type(inner).__name__)

    def evaluate(self, value: Any, options: EvaluationOptions) -> Evaluation:
        try:
            evaluation = self.inner.evaluate(value, options)
        except Exception as e:
            logger.warning("Evaluator '%s' failed: %s", self.name, e)
            return error_evaluation(e)
        if not isinstance(evaluation, Evaluation):
            return error_evaluation(
                f"Evaluator '{self.name}' returned {type(evaluation).__name__}, expected Evaluation"
            )
        try:
            _validate(evaluation)
        except (TypeError, ValueError) as e:
            logger.warning("Evaluator '%s' returned an invalid evaluation: %s", self.name, e)
            return error_evaluation(f"Evaluator '{self.name}' returned an invalid evaluation: {e}")
        return evaluation


def _validate(evaluation: Evaluation) -> None:
    """Check the evaluation's parts and coerce the metrics to finite floats in place"""
    quantitative = evaluation.quantitative
    if not isinstance(quantitative, QuantitativeMetrics):
        raise TypeError(f"quantitative is {type(quantitative).__name__}, expected QuantitativeMetrics")
    if not isinstance(evaluation.qualitative, QualitativeAssessment):
        raise TypeError(
            f"qualitative is {type(evaluation.qualitative).__name__}, expected QualitativeAssessment"
        )

    for name in ("accuracy", "completeness", "relevance", "overall"):
        raw = getattr(quantitative, name)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"{name} is not a number: {raw!r}") from None
        if not math.isfinite(value):
            raise ValueError(f"{name} is not finite: {raw!r}")
        setattr(quantitative, name, value)

    if not isinstance(quantitative.errors, list):
        raise TypeError(f"errors is {type(quantitative.errors).__name__}, expected list")
