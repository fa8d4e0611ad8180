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

"""Markdown and plain-text reports for accuracy runs."""

from datetime import date
from typing import Dict, List, Optional, Sequence

from autoclose.evaluation.harness import CategoryStats, ConfusionMatrix

# Metric -> minimum value (exclusive) for a PASS
TARGETS = {
    "accuracy": 0.85,
    "precision": 0.80,
    "recall": 0.80,
    "f1": 0.80,
}


def _status(value: float, target: float) -> str:
    return "PASS" if value > target else "FAIL"


def format_sweep_table(matrices: Sequence[ConfusionMatrix]) -> str:
    """Plain-text table of threshold sweep results."""
    lines = []
    lines.append("Threshold | Accuracy | Precision | Recall | F1     | FP | FN")
    lines.append("-" * 62)
    for m in matrices:
        threshold = f"{m.threshold:.2f}" if m.threshold is not None else "  -"
        lines.append(
            f"{threshold:<9} | {m.accuracy:>7.1%} | {m.precision:>8.1%} | "
            f"{m.recall:>5.1%} | {m.f1:>5.1%} | {m.fp:>2} | {m.fn:>2}"
        )
    return "\n".join(lines)


def generate_report(
    matrix: ConfusionMatrix,
    categories: Optional[Dict[str, CategoryStats]] = None,
    sweep: Optional[Sequence[ConfusionMatrix]] = None,
    embedding_model: Optional[str] = None,
    generated_on: Optional[date] = None,
) -> str:
    """Generate a markdown accuracy report.

    Args:
        matrix: Confusion matrix of the main run
        categories: Per-category accuracy (optional)
        sweep: Threshold sweep results (optional)
        embedding_model: Model name for the configuration section
        generated_on: Report date (today if omitted)

    Returns:
        Markdown text
    """
    generated_on = generated_on or date.today()
    positives = matrix.tp + matrix.fn
    negatives = matrix.tn + matrix.fp

    lines: List[str] = []
    lines.append("# Closure Detection Accuracy Report")
    lines.append("")
    lines.append(f"**Generated:** {generated_on.isoformat()}")
    lines.append("")

    lines.append("## Key Metrics")
    lines.append("")
    lines.append("| Metric | Value | Target | Status |")
    lines.append("|--------|-------|--------|--------|")
    for name, target in TARGETS.items():
        value = getattr(matrix, name)
        label = "F1 Score" if name == "f1" else name.capitalize()
        lines.append(f"| **{label}** | {value:.2%} | >{target:.0%} | {_status(value, target)} |")
    lines.append("")
    lines.append(f"- **False Positive Rate:** {matrix.false_positive_rate:.2%} (lower is better)")
    lines.append(f"- **False Negative Rate:** {matrix.false_negative_rate:.2%} (lower is better)")
    lines.append("")

    lines.append("## Dataset")
    lines.append("")
    lines.append(f"- **Total Cases:** {matrix.total}")
    lines.append(f"- **Closure Statements (positive):** {positives}")
    lines.append(f"- **Non-Closure Statements (negative):** {negatives}")
    if matrix.total:
        lines.append(f"- **Balance:** {positives / matrix.total:.1%} positive")
    lines.append("")

    lines.append("## Confusion Matrix")
    lines.append("")
    lines.append("| | Predicted closure | Predicted non-closure |")
    lines.append("|---|---|---|")
    lines.append(f"| **Actual closure** | {matrix.tp} (TP) | {matrix.fn} (FN) |")
    lines.append(f"| **Actual non-closure** | {matrix.fp} (FP) | {matrix.tn} (TN) |")
    lines.append("")

    if categories:
        lines.append("## Categories")
        lines.append("")
        lines.append("| Category | Correct | Total | Accuracy |")
        lines.append("|----------|---------|-------|----------|")
        for name, stats in categories.items():
            lines.append(f"| {name} | {stats.correct} | {stats.total} | {stats.accuracy:.1%} |")
        lines.append("")

    if sweep:
        lines.append("## Threshold Sweep")
        lines.append("")
        lines.append("```")
        lines.append(format_sweep_table(sweep))
        lines.append("```")
        lines.append("")

    lines.append("## Configuration")
    lines.append("")
    if embedding_model:
        lines.append(f"- **Embedding model:** {embedding_model}")
    if matrix.threshold is not None:
        lines.append(f"- **Threshold:** {matrix.threshold:.2f}")
    lines.append("- **Similarity metric:** cosine")
    lines.append("- **Fallback:** keyword matching when embeddings are unavailable")
    lines.append("")

    return "\n".join(lines)
