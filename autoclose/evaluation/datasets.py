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

"""Packaged evaluation datasets."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml

from autoclose.classification.intent_classifier import ResponseLabel
from autoclose.conversation import Conversation
from autoclose.core.errors import ConfigurationError
from autoclose.embeddings.collections import DATA_DIR
from autoclose.evaluation.harness import LabeledConversation, LabeledExample

CLOSURE_DATASET_FILE = DATA_DIR / "closure_dataset.yaml"
CLASSIFICATION_DATASET_FILE = DATA_DIR / "classification_dataset.yaml"


def _read_cases(path: Union[str, Path]) -> List[Dict[str, Any]]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read dataset {path}: {e}") from e
    cases = data.get("cases") if isinstance(data, dict) else data
    if not isinstance(cases, list):
        raise ConfigurationError(f"Dataset {path} has no 'cases' list")
    return cases


def load_closure_dataset(path: Optional[Union[str, Path]] = None) -> List[LabeledExample]:
    """Load labelled agent messages (``message``, ``expected``, ``category``)."""
    source = path or CLOSURE_DATASET_FILE
    examples = []
    for case in _read_cases(source):
        try:
            examples.append(
                LabeledExample(
                    message=str(case["message"]),
                    expected=bool(case["expected"]),
                    category=str(case.get("category", "general")),
                )
            )
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed case in {source}: {case!r}") from e
    return examples


def load_classification_dataset(
    path: Optional[Union[str, Path]] = None,
) -> List[LabeledConversation]:
    """Load labelled conversations (``turns`` of [speaker, text], ``expected`` label)."""
    source = path or CLASSIFICATION_DATASET_FILE
    cases = []
    for case in _read_cases(source):
        try:
            cases.append(
                LabeledConversation(
                    conversation=Conversation.from_turns(case["turns"]),
                    expected=ResponseLabel(case["expected"]),
                    category=str(case.get("category", "general")),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed case in {source}: {case!r}") from e
    return cases


def dataset_stats(dataset: Sequence[LabeledExample]) -> Dict[str, Any]:
    """Size, class balance and per-category counts."""
    total = len(dataset)
    positives = sum(1 for example in dataset if example.expected)
    categories: Dict[str, int] = {}
    for example in dataset:
        categories[example.category] = categories.get(example.category, 0) + 1
    return {
        "total": total,
        "positives": positives,
        "negatives": total - positives,
        "categories": categories,
        "balance": positives / total if total else 0.0,
    }


def by_category(dataset: Sequence[LabeledExample], category: str) -> List[LabeledExample]:
    return [example for example in dataset if example.category == category]
