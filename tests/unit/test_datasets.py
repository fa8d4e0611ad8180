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

"""Tests for the packaged evaluation datasets."""

import pytest

from autoclose.classification.intent_classifier import ResponseLabel
from autoclose.core.errors import ConfigurationError
from autoclose.evaluation import (
    by_category,
    dataset_stats,
    load_classification_dataset,
    load_closure_dataset,
)


class TestClosureDataset:
    def test_packaged_dataset(self):
        dataset = load_closure_dataset()
        stats = dataset_stats(dataset)

        assert stats["total"] == 52
        assert stats["positives"] == 25
        assert stats["negatives"] == 27
        assert stats["categories"]["direct_closure"] == 6

    def test_messages_are_non_empty(self):
        assert all(example.message.strip() for example in load_closure_dataset())

    def test_by_category(self):
        dataset = load_closure_dataset()
        direct = by_category(dataset, "direct_closure")

        assert len(direct) == 6
        assert all(example.expected for example in direct)

    def test_custom_file(self, tmp_path):
        path = tmp_path / "cases.yaml"
        path.write_text(
            "cases:\n"
            "  - {message: 'Take care', expected: true}\n"
            "  - {message: 'Checking now', expected: false, category: info}\n"
        )

        dataset = load_closure_dataset(path)

        assert [e.category for e in dataset] == ["general", "info"]
        assert dataset[0].expected is True

    def test_missing_cases(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("name: nothing\n")
        with pytest.raises(ConfigurationError):
            load_closure_dataset(path)

    def test_malformed_case(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("cases:\n  - {expected: true}\n")
        with pytest.raises(ConfigurationError):
            load_closure_dataset(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_closure_dataset(tmp_path / "nope.yaml")

    def test_empty_stats(self):
        assert dataset_stats([])["balance"] == 0.0


class TestClassificationDataset:
    def test_packaged_dataset(self):
        cases = load_classification_dataset()
        labels = [case.expected for case in cases]

        assert len(cases) == 16
        assert labels.count(ResponseLabel.SATISFIED) == 7
        assert labels.count(ResponseLabel.NEEDS_HELP) == 6
        assert labels.count(ResponseLabel.UNCERTAIN) == 3

    def test_last_turn_is_customer(self):
        for case in load_classification_dataset():
            assert case.conversation[-1].is_customer

    def test_unknown_label(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("cases:\n  - {expected: maybe, turns: [[customer, hi]]}\n")
        with pytest.raises(ConfigurationError):
            load_classification_dataset(path)
