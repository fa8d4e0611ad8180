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

"""Accuracy evaluation for closure detection and intent classification."""

from autoclose.evaluation.datasets import (
    by_category,
    dataset_stats,
    load_classification_dataset,
    load_closure_dataset,
)
from autoclose.evaluation.harness import (
    CategoryStats,
    ClassifierEvaluation,
    ConfusionMatrix,
    EvaluationResult,
    LabeledConversation,
    LabeledExample,
    Prediction,
    best_by_accuracy,
    best_by_f1,
    evaluate,
    evaluate_classifier,
    per_category,
    sweep,
)
from autoclose.evaluation.report import TARGETS, format_sweep_table, generate_report

__all__ = [
    "TARGETS",
    "CategoryStats",
    "ClassifierEvaluation",
    "ConfusionMatrix",
    "EvaluationResult",
    "LabeledConversation",
    "LabeledExample",
    "Prediction",
    "best_by_accuracy",
    "best_by_f1",
    "by_category",
    "dataset_stats",
    "evaluate",
    "evaluate_classifier",
    "format_sweep_table",
    "generate_report",
    "load_classification_dataset",
    "load_closure_dataset",
    "per_category",
    "sweep",
]
