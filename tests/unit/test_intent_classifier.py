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

"""Tests for IntentClassifier and label normalization."""

import pytest

from autoclose.classification.intent_classifier import (
    SYSTEM_PROMPT,
    ClassificationResult,
    IntentClassifier,
    ResponseLabel,
    build_user_prompt,
    normalize_label,
)
from autoclose.config.settings import Settings, set_settings
from autoclose.conversation import Conversation
from autoclose.providers import OpenAICompletionProvider, ProxyCompletionProvider
from tests.mocks.providers import FakeCompletionProvider, failing_completion_provider


@pytest.fixture
def conversation():
    return Conversation.from_turns(
        [
            ("customer", "My order never arrived"),
            ("agent", "I have reshipped it. Is there anything else I can help you with?"),
            ("customer", "No, that's all. Thank you!"),
        ]
    )


class TestNormalizeLabel:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("satisfied", ResponseLabel.SATISFIED),
            ("  needs_help\n", ResponseLabel.NEEDS_HELP),
            ('"uncertain"', ResponseLabel.UNCERTAIN),
            ("SATISFIED.", ResponseLabel.SATISFIED),
        ],
    )
    def test_valid_labels(self, raw, expected):
        assert normalize_label(raw) == (expected, True)

    @pytest.mark.parametrize("raw", ["maybe", "", "satisfied because they said no", None, 3])
    def test_invalid_becomes_uncertain(self, raw):
        assert normalize_label(raw) == (ResponseLabel.UNCERTAIN, False)


class TestBuildUserPrompt:
    def test_contains_labelled_transcript(self, conversation):
        prompt = build_user_prompt(conversation)

        assert prompt.startswith("Here is the conversation:")
        assert "Customer: My order never arrived" in prompt
        assert "Agent: I have reshipped it." in prompt
        assert prompt.index("Customer: My order") < prompt.index("Customer: No, that's all")


class TestClassify:
    """Tests for IntentClassifier.classify."""

    @pytest.mark.asyncio
    async def test_returns_label(self, conversation):
        classifier = IntentClassifier(FakeCompletionProvider("satisfied"))
        assert await classifier.classify(conversation) is ResponseLabel.SATISFIED

    @pytest.mark.asyncio
    async def test_call_parameters(self, conversation):
        provider = FakeCompletionProvider("needs_help")
        classifier = IntentClassifier(provider)

        await classifier.classify(conversation)

        call = provider.calls[0]
        assert call["system_prompt"] == SYSTEM_PROMPT
        assert call["temperature"] == 0.3
        assert call["max_tokens"] == 10
        assert "No, that's all. Thank you!" in call["user_prompt"]

    @pytest.mark.asyncio
    async def test_settings_override_parameters(self, conversation):
        set_settings(Settings(classifier_temperature=0.0, classifier_max_tokens=5))
        provider = FakeCompletionProvider("satisfied")

        await IntentClassifier(provider).classify(conversation)

        assert provider.calls[0]["temperature"] == 0.0
        assert provider.calls[0]["max_tokens"] == 5

    @pytest.mark.asyncio
    async def test_details(self, conversation):
        classifier = IntentClassifier(FakeCompletionProvider(" Satisfied "))

        result = await classifier.classify(conversation, include_details=True)

        assert isinstance(result, ClassificationResult)
        assert result.label is ResponseLabel.SATISFIED
        assert result.classification == "satisfied"
        assert result.raw_output == " Satisfied "
        assert result.is_valid
        assert result.error is None
        assert result.customer_message == "No, that's all. Thank you!"
        assert result.context_size == 3
        assert result.model == "fake-completion"

    @pytest.mark.asyncio
    async def test_invalid_output_is_uncertain(self, conversation):
        classifier = IntentClassifier(FakeCompletionProvider("probably satisfied"))

        result = await classifier.classify(conversation, include_details=True)

        assert result.label is ResponseLabel.UNCERTAIN
        assert not result.is_valid
        assert "probably satisfied" in result.error

    @pytest.mark.asyncio
    async def test_provider_failure_is_uncertain(self, conversation):
        classifier = IntentClassifier(failing_completion_provider())

        result = await classifier.classify(conversation, include_details=True)

        assert result.label is ResponseLabel.UNCERTAIN
        assert "fake outage" in result.error
        assert result.raw_output is None

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_uncertain(self, conversation):
        classifier = IntentClassifier(FakeCompletionProvider(error=RuntimeError("boom")))
        assert await classifier.classify(conversation) is ResponseLabel.UNCERTAIN

    @pytest.mark.asyncio
    async def test_no_customer_message_skips_provider(self):
        provider = FakeCompletionProvider("satisfied")
        classifier = IntentClassifier(provider)
        conversation = Conversation.from_turns([("agent", "Hello, how can I help?")])

        result = await classifier.classify(conversation, include_details=True)

        assert result.label is ResponseLabel.UNCERTAIN
        assert result.error == "no customer message"
        assert provider.call_count == 0

    @pytest.mark.asyncio
    async def test_to_dict(self, conversation):
        classifier = IntentClassifier(FakeCompletionProvider("needs_help"))
        result = await classifier.classify(conversation, include_details=True)

        data = result.to_dict()

        assert data["classification"] == "needs_help"
        assert data["llmResponse"] == "needs_help"
        assert data["isValid"] is True
        assert data["conversationContext"] == 3


class TestDefaultProvider:
    def test_direct_provider_from_settings(self):
        classifier = IntentClassifier()
        assert isinstance(classifier.provider, OpenAICompletionProvider)

    def test_proxy_provider_from_settings(self):
        set_settings(Settings(proxy_base_url="https://proxy.example.com"))
        classifier = IntentClassifier()
        assert isinstance(classifier.provider, ProxyCompletionProvider)
