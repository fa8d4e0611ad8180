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

"""Property-based tests for classification label normalization."""

import asyncio

from hypothesis import Phase, given, settings, strategies as st

from autoclose.classification.intent_classifier import (
    VALID_LABELS,
    IntentClassifier,
    ResponseLabel,
    normalize_label,
)
from autoclose.conversation import Conversation
from tests.mocks.providers import FakeCompletionProvider

label_strategy = st.sampled_from(sorted(VALID_LABELS))
whitespace = st.text(alphabet=" \t\n", max_size=3)


class TestNormalizeLabelProperties:
    @given(raw=st.text(max_size=40))
    @settings(max_examples=200, phases=[Phase.generate])
    def test_always_in_closed_set(self, raw):
        label, is_valid = normalize_label(raw)

        assert isinstance(label, ResponseLabel)
        if not is_valid:
            assert label is ResponseLabel.UNCERTAIN

    @given(label=label_strategy, before=whitespace, after=whitespace, upper=st.booleans())
    @settings(max_examples=100, phases=[Phase.generate])
    def test_padding_and_case_ignored(self, label, before, after, upper):
        raw = before + (label.upper() if upper else label) + after

        assert normalize_label(raw) == (ResponseLabel(label), True)

    @given(label=label_strategy, suffix=st.text(alphabet="abcxyz", min_size=1, max_size=5))
    @settings(max_examples=100, phases=[Phase.generate])
    def test_extra_words_are_invalid(self, label, suffix):
        assert normalize_label(f"{label} {suffix}") == (ResponseLabel.UNCERTAIN, False)


class TestClassifierNeverRaises:
    @given(raw=st.one_of(st.text(max_size=30), st.none(), st.integers()))
    @settings(max_examples=50, phases=[Phase.generate])
    def test_any_model_output_yields_label(self, raw):
        conversation = Conversation.from_turns(
            [("agent", "Anything else I can help with?"), ("customer", "No thanks")]
        )
        provider = FakeCompletionProvider()
        provider.responses = [raw]
        classifier = IntentClassifier(provider)

        label = asyncio.run(classifier.classify(conversation))

        assert label in set(ResponseLabel)
