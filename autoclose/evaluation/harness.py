# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Accuracy harness for closure detection and intent classification.

Runs a labelled dataset through the detector, tallies a confusion matrix and
derives precision, recall, F1 and accuracy. ``sweep`` repeats the evaluation
over a grid of thresholds to pick an operating point.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from autoclose.classification.intent_classifier import IntentClassifier, ResponseLabel
from autoclose.conversation import Conversation
from autoclose.detection.closure_detector import ClosureDetector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabeledExample:
    """One agent message with its expected closure label."""

    message: str
    expected: bool
    category: str = "general"


@dataclass(frozen=True)
class LabeledConversation:
    """A conversation whose last customer reply has an expected intent."""

    conversation: Conversation
    expected: ResponseLabel
    category: str = "general"


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


@dataclass
class ConfusionMatrix:
    """TP/TN/FP/FN tally at one threshold."""

    tp: int = 0
    tn: int = 0
    fp: int = 0
    fn: int = 0
    threshold: Optional[float] = None

    def record(self, predicted: bool, expected: bool) -> None:
        if predicted and expected:
            self.tp += 1
        elif predicted:
            self.fp += 1
        elif expected:
            self.fn += 1
        else:
            self.tn += 1

    @property
    def total(self) -> int:
        return self.tp + self.tn + self.fp + self.fn

    @property
    def precision(self) -> float:
        return _ratio(self.tp, self.tp + self.fp)

    @property
    def recall(self) -> float:
        return _ratio(self.tp, self.tp + self.fn)

    @property
    def f1(self) -> float:
        return _ratio(2 * self.precision * self.recall, self.precision + self.recall)

    @property
    def accuracy(self) -> float:
        return _ratio(self.tp + self.tn, self.total)

    @property
    def false_positive_rate(self) -> float:
        return _ratio(self.fp, self.fp + self.tn)

    @property
    def false_negative_rate(self) -> float:
        return _ratio(self.fn, self.fn + self.tp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "true_positives": self.tp,
            "true_negatives": self.tn,
            "false_positives": self.fp,
            "false_negatives": self.fn,
            "total": self.total,
            "precision": round(self.precision, 4),
            "recall": round(self.recall, 4),
            "f1": round(self.f1, 4),
            "accuracy": round(self.accuracy, 4),
            "false_positive_rate": round(self.false_positive_rate, 4),
            "false_negative_rate": round(self.false_negative_rate, 4),
        }


@dataclass(frozen=True)
class Prediction:
    example: LabeledExample
    predicted: bool

    @property
    def correct(self) -> bool:
        return self.predicted == self.example.expected


@dataclass
class CategoryStats:
    total: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> float:
        return _ratio(self.correct, self.total)


@dataclass
class EvaluationResult:
    """Confusion matrix plus per-case predictions."""

    matrix: ConfusionMatrix
    predictions: List[Prediction] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def categories(self) -> Dict[str, CategoryStats]:
        return per_category(self.predictions)

    @property
    def failures(self) -> List[Prediction]:
        return [p for p in self.predictions if not p.correct]


def per_category(predictions: Iterable[Prediction]) -> Dict[str, CategoryStats]:
    """Group prediction outcomes by dataset category (first-seen order)."""
    stats: Dict[str, CategoryStats] = {}
    for prediction in predictions:
        entry = stats.setdefault(prediction.example.category, CategoryStats())
        entry.total += 1
        if prediction.correct:
            entry.correct += 1
    return stats


async def evaluate(dataset: Sequence[LabeledExample], detector: ClosureDetector) -> EvaluationResult:
    """Run every example through the detector at its current threshold.

    Args:
        dataset: Labelled agent messages
        detector: Detector under test

    Returns:
        EvaluationResult with the confusion matrix and predictions
    """
    start = time.perf_counter()
    matrix = ConfusionMatrix(threshold=detector.threshold)
    predictions: List[Prediction] = []
    for example in dataset:
        predicted = bool(await detector.detect(example.message))
        matrix.record(predicted, example.expected)
        predictions.append(Prediction(example=example, predicted=predicted))

    duration = time.perf_counter() - start
    logger.info(
        f"Evaluated {matrix.total} cases at threshold {matrix.threshold:.2f}: "
        f"accuracy={matrix.accuracy:.1%} f1={matrix.f1:.1%} ({duration:.2f}s)"
    )
    return EvaluationResult(matrix=matrix, predictions=predictions, duration_seconds=duration)


async def sweep(
    dataset: Sequence[LabeledExample],
    detector: ClosureDetector,
    thresholds: Iterable[float],
) -> List[ConfusionMatrix]:
    """Evaluate the dataset once per threshold.

    The detector's threshold is set for each value and left at the last
    accepted one. Values outside [0, 1] are ignored by the detector, so the
    evaluation for such a value runs at the previous threshold.

    Returns:
        One ConfusionMatrix per threshold, in input order
    """
    matrices = []
    for threshold in thresholds:
        detector.set_threshold(threshold)
        result = await evaluate(dataset, detector)
        matrices.append(result.matrix)
    return matrices


def best_by_f1(matrices: Sequence[ConfusionMatrix]) -> Optional[ConfusionMatrix]:
    """Matrix with the highest F1; the earliest wins ties."""
    best = None
    for matrix in matrices:
        if best is None or matrix.f1 > best.f1:
            best = matrix
    return best


def best_by_accuracy(matrices: Sequence[ConfusionMatrix]) -> Optional[ConfusionMatrix]:
    """Matrix with the highest accuracy; the earliest wins ties."""
    best = None
    for matrix in matrices:
        if best is None or matrix.accuracy > best.accuracy:
            best = matrix
    return best


@dataclass
class ClassifierEvaluation:
    """Accuracy of the intent classifier on labelled conversations."""

    total: int = 0
    correct: int = 0
    invalid_outputs: int = 0
    by_label: Dict[str, CategoryStats] = field(default_factory=dict)
    failures: List[Dict[str, str]] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return _ratio(self.correct, self.total)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "correct": self.correct,
            "accuracy": round(self.accuracy, 4),
            "invalid_outputs": self.invalid_outputs,
            "by_label": {
                label: {"total": s.total, "correct": s.correct, "accuracy": round(s.accuracy, 4)}
                for label, s in self.by_label.items()
            },
        }


async def evaluate_classifier(
    cases: Sequence[LabeledConversation],
    classifier: IntentClassifier,
) -> ClassifierEvaluation:
    """Classify each labelled conversation and tally accuracy per expected label."""
    evaluation = ClassifierEvaluation()
    for case in cases:
        result = await classifier.classify(case.conversation, include_details=True)
        stats = evaluation.by_label.setdefault(case.expected.value, CategoryStats())
        evaluation.total += 1
        stats.total += 1
        if not result.is_valid:
            evaluation.invalid_outputs += 1
        if result.label is case.expected:
            evaluation.correct += 1
            stats.correct += 1
        else:
            evaluation.failures.append(
                {
                    "customer_message": result.customer_message,
                    "expected": case.expected.value,
                    "predicted": result.label.value,
                }
            )
    logger.info(
        f"Classifier accuracy: {evaluation.accuracy:.1%} "
        f"({evaluation.correct}/{evaluation.total})"
    )
    return evaluation
