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

"""Tests for the simulated customer."""

import random
from unittest.mock import AsyncMock

import pytest

from autoclose.config.settings import Settings
from autoclose.conversation import Conversation
from autoclose.providers import OpenAICompletionProvider
from autoclose.simulation import (
    APOLOGY_REPLIES,
    CLOSING_REPLIES,
    GENERIC_REPLIES,
    ORDER_REPLIES,
    REFUND_REPLIES,
    CustomerSimulator,
    build_persona,
    build_prompt,
    mock_reply,
)
from tests.mocks.providers import FakeCompletionProvider, failing_completion_provider


def conversation_ending_with(text, padding=3):
    turns = [("customer", "Hi"), ("agent", "Hello")] * padding
    return Conversation.from_turns(turns + [("agent", text)])


class TestMockReply:
    @pytest.mark.parametrize(
        "text,pool",
        [
            ("Is there anything else I can help you with?", CLOSING_REPLIES),
            ("Let me check that order for you", ORDER_REPLIES),
            ("I'm so sorry about that", APOLOGY_REPLIES),
            ("I can issue a refund", REFUND_REPLIES),
            ("The weather is nice", GENERIC_REPLIES),
        ],
    )
    def test_keyword_pools(self, text, pool):
        reply = mock_reply(conversation_ending_with(text), random.Random(1))
        assert reply in pool

    def test_short_conversation_asks_about_order(self):
        conversation = Conversation.from_turns([("agent", "Hi, how can I assist?")])
        assert mock_reply(conversation, random.Random(1)) in ORDER_REPLIES

    def test_empty_conversation(self):
        assert mock_reply(Conversation(), random.Random(1)) in ORDER_REPLIES


class TestPrompts:
    def test_persona_first_turn(self):
        persona = build_persona(Conversation.from_turns([("agent", "Hi")]))
        assert "Describe your issue briefly" in persona

    def test_persona_after_question(self):
        conversation = Conversation.from_turns([("customer", "Where is my order?")])
        assert "STOP ASKING QUESTIONS" in build_persona(conversation)

    def test_persona_allows_one_clarification(self):
        conversation = Conversation.from_turns(
            [("agent", "Hi"), ("customer", "My order is late."), ("agent", "Checking")]
        )
        assert "AT MOST 1 brief clarifying question" in build_persona(conversation)

    def test_prompt_contains_transcript(self):
        prompt = build_prompt(Conversation.from_turns([("agent", "Hello there")]))
        assert "Agent: Hello there" in prompt


class TestCustomerSimulator:
    @pytest.mark.asyncio
    async def test_uses_mock_without_credentials(self, settings):
        simulator = CustomerSimulator(settings=settings, rng=random.Random(3))

        assert simulator.provider is None
        reply = await simulator.generate_reply(
            conversation_ending_with("Anything else I can help with?")
        )
        assert reply in CLOSING_REPLIES

    def test_builds_provider_with_key(self):
        settings = Settings(openai_api_key="sk-test")
        simulator = CustomerSimulator(settings=settings)

        assert isinstance(simulator.provider, OpenAICompletionProvider)
        assert simulator.provider.model_name == "gpt-3.5-turbo"

    def test_force_mock(self):
        simulator = CustomerSimulator(FakeCompletionProvider("hi"), use_llm=False)
        assert simulator.provider is None

    @pytest.mark.asyncio
    async def test_llm_reply(self, settings):
        provider = FakeCompletionProvider("  Thanks, that fixed it!  ")
        simulator = CustomerSimulator(provider, settings=settings)

        reply = await simulator.generate_reply(conversation_ending_with("Try restarting"))

        assert reply == "Thanks, that fixed it!"
        call = provider.calls[0]
        assert call["temperature"] == 0.8
        assert call["max_tokens"] == 150
        assert "COOPERATIVE" in call["system_prompt"]

    @pytest.mark.asyncio
    async def test_failure_falls_back(self, settings):
        simulator = CustomerSimulator(
            failing_completion_provider(), settings=settings, rng=random.Random(0)
        )
        reply = await simulator.generate_reply(conversation_ending_with("The weather is nice"))
        assert reply in GENERIC_REPLIES

    @pytest.mark.asyncio
    async def test_blank_reply_falls_back(self, settings):
        simulator = CustomerSimulator(FakeCompletionProvider("   "), settings=settings)
        reply = await simulator.generate_reply(conversation_ending_with("The weather is nice"))
        assert reply in GENERIC_REPLIES

    def test_reply_delay_bounds(self):
        settings = Settings(simulator_min_delay=2.0, simulator_max_delay=4.0)
        simulator = CustomerSimulator(settings=settings, rng=random.Random(5))

        for _ in range(20):
            assert 2.0 <= simulator.reply_delay() <= 4.0

    @pytest.mark.asyncio
    async def test_reply_after_delay_sleeps(self, settings):
        sleep = AsyncMock()
        simulator = CustomerSimulator(settings=settings, rng=random.Random(1), sleep=sleep)

        await simulator.reply_after_delay(conversation_ending_with("Okay"))

        sleep.assert_awaited_once()
        delay = sleep.await_args[0][0]
        assert 1.0 <= delay <= 10.0
