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

"""Command-line interface for autoclose."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from autoclose import __version__
from autoclose.classification.intent_classifier import IntentClassifier
from autoclose.config.settings import get_settings, load_settings, set_settings
from autoclose.conversation import Conversation
from autoclose.core.errors import AutoCloseError
from autoclose.detection.closure_detector import ClosureDetector
from autoclose.evaluation.datasets import (
    dataset_stats,
    load_classification_dataset,
    load_closure_dataset,
)
from autoclose.evaluation.harness import (
    best_by_accuracy,
    best_by_f1,
    evaluate,
    evaluate_classifier,
    sweep,
)
from autoclose.evaluation.report import format_sweep_table, generate_report

app = typer.Typer(
    name="autoclose",
    help="Closure detection and intent-aware auto-close for support chats",
    add_completion=False,
)

console = Console()

DEFAULT_SWEEP = "0.55,0.60,0.65,0.70,0.75,0.80"


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"autoclose v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML file with setting overrides",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """autoclose - detect closure statements and auto-close support chats."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if config is not None:
        try:
            set_settings(load_settings(config))
        except AutoCloseError as e:
            console.print(f"[bold red]Error:[/] {e}")
            raise typer.Exit(1)


def _parse_thresholds(raw: str) -> List[float]:
    try:
        return [float(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        console.print(f"[bold red]Error:[/] Invalid threshold list: {raw}")
        raise typer.Exit(1)


def _detector(threshold: Optional[float]) -> ClosureDetector:
    try:
        return ClosureDetector(threshold=threshold)
    except ValueError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1)


@app.command()
def detect(
    message: str = typer.Argument(..., help="Agent message to check"),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", "-t", help="Similarity threshold (0-1)"
    ),
    details: bool = typer.Option(False, "--details", "-d", help="Show top matches"),
) -> None:
    """Check whether an agent message is a closure statement."""
    detector = _detector(threshold)
    outcome = asyncio.run(detector.detect(message, include_details=True))

    verdict = "[green]closure[/]" if outcome.is_closure else "[yellow]not a closure[/]"
    console.print(f"{verdict}")
    if outcome.fallback_used:
        console.print("[dim]Embeddings unavailable, keyword fallback used[/]")
    if details and outcome.details is not None:
        result = outcome.details
        console.print(
            f"Max similarity: {result.max_similarity:.3f} (threshold {result.threshold:.2f})"
        )
        table = Table(title="Top matches")
        table.add_column("Score", justify="right")
        table.add_column("Reference example")
        for match in result.top3:
            table.add_row(f"{match.score:.3f}", match.example)
        console.print(table)


@app.command()
def classify(
    agent: List[str] = typer.Option(..., "--agent", "-a", help="Agent turn (repeatable)"),
    customer: List[str] = typer.Option(
        ..., "--customer", "-u", help="Customer turn (repeatable)"
    ),
) -> None:
    """Classify the customer's reply to a closure statement.

    Turns alternate, starting with the agent.

    Example:
        autoclose classify -a "Anything else I can help with?" -u "No, thanks!"
    """
    conversation = Conversation()
    for index in range(max(len(agent), len(customer))):
        if index < len(agent):
            conversation.add_agent_message(agent[index])
        if index < len(customer):
            conversation.add_customer_message(customer[index])

    classifier = IntentClassifier()
    result = asyncio.run(classifier.classify(conversation, include_details=True))
    console.print(f"[bold]{result.label.value}[/]")
    if result.error:
        console.print(f"[dim]{result.error}[/]")
    elif not result.is_valid:
        console.print(f"[dim]Unexpected model output: {result.raw_output!r}[/]")


@app.command("evaluate")
def evaluate_command(
    dataset: Optional[Path] = typer.Option(None, "--dataset", help="Closure dataset YAML"),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t"),
    intent: bool = typer.Option(
        False, "--intent", help="Evaluate the intent classifier instead"
    ),
) -> None:
    """Measure detection (or classification) accuracy on a labelled dataset."""
    try:
        if intent:
            cases = load_classification_dataset(dataset)
            evaluation = asyncio.run(evaluate_classifier(cases, IntentClassifier()))
            console.print(
                f"Intent accuracy: {evaluation.accuracy:.1%} "
                f"({evaluation.correct}/{evaluation.total}), "
                f"invalid outputs: {evaluation.invalid_outputs}"
            )
            for failure in evaluation.failures:
                console.print(
                    f"  [red]x[/] {failure['customer_message']!r}: "
                    f"expected {failure['expected']}, got {failure['predicted']}"
                )
            return
        examples = load_closure_dataset(dataset)
    except AutoCloseError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1)

    stats = dataset_stats(examples)
    console.print(
        f"Dataset: {stats['total']} cases ({stats['positives']} closures, "
        f"{stats['negatives']} non-closures)"
    )
    result = asyncio.run(evaluate(examples, _detector(threshold)))
    matrix = result.matrix

    table = Table(title=f"Closure detection at threshold {matrix.threshold:.2f}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Accuracy", f"{matrix.accuracy:.1%}")
    table.add_row("Precision", f"{matrix.precision:.1%}")
    table.add_row("Recall", f"{matrix.recall:.1%}")
    table.add_row("F1", f"{matrix.f1:.1%}")
    table.add_row("TP / TN / FP / FN", f"{matrix.tp} / {matrix.tn} / {matrix.fp} / {matrix.fn}")
    console.print(table)

    for failure in result.failures:
        kind = "FN" if failure.example.expected else "FP"
        console.print(f"  [red]{kind}[/] [{failure.example.category}] {failure.example.message}")


@app.command("sweep")
def sweep_command(
    thresholds: str = typer.Option(
        DEFAULT_SWEEP, "--thresholds", help="Comma-separated thresholds"
    ),
    dataset: Optional[Path] = typer.Option(None, "--dataset", help="Closure dataset YAML"),
) -> None:
    """Evaluate the dataset across several thresholds."""
    values = _parse_thresholds(thresholds)
    try:
        examples = load_closure_dataset(dataset)
    except AutoCloseError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1)

    matrices = asyncio.run(sweep(examples, _detector(None), values))
    console.print(format_sweep_table(matrices))

    by_f1 = best_by_f1(matrices)
    by_accuracy = best_by_accuracy(matrices)
    if by_f1 is not None and by_accuracy is not None:
        console.print(f"\nBest by F1:       {by_f1.threshold:.2f} (F1 {by_f1.f1:.1%})")
        console.print(
            f"Best by accuracy: {by_accuracy.threshold:.2f} (accuracy {by_accuracy.accuracy:.1%})"
        )


@app.command()
def report(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the markdown report to this file"
    ),
    dataset: Optional[Path] = typer.Option(None, "--dataset", help="Closure dataset YAML"),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t"),
    include_sweep: bool = typer.Option(
        False, "--sweep/--no-sweep", help="Append a threshold sweep"
    ),
) -> None:
    """Generate a markdown accuracy report."""
    try:
        examples = load_closure_dataset(dataset)
    except AutoCloseError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1)

    detector = _detector(threshold)
    result = asyncio.run(evaluate(examples, detector))
    matrices = None
    if include_sweep:
        # Sweep on a copy so the reported threshold stays intact
        sweeper = detector.with_threshold(detector.threshold)
        matrices = asyncio.run(sweep(examples, sweeper, _parse_thresholds(DEFAULT_SWEEP)))

    text = generate_report(
        result.matrix,
        categories=result.categories,
        sweep=matrices,
        embedding_model=get_settings().embedding_model,
    )
    if output is not None:
        output.write_text(text, encoding="utf-8")
        console.print(f"[green]Report written to {output}[/]")
    else:
        console.print(Markdown(text))


if __name__ == "__main__":
    app()
