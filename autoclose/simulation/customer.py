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

"""Simulated customer for the training console.

Generates the customer's next reply with a chat-completion model playing a
cooperative customer. Without a configured provider, or when the call fails,
a canned reply is picked from keyword-matched pools.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Sequence

from autoclose.config.settings import Settings, get_settings
from autoclose.conversation import Conversation
from autoclose.providers.protocols import CompletionProvider

logger = logging.getLogger(__name__)

CLOSING_REPLIES = (
    "No, that's all. Thank you so much for your help!",
    "I think I'm all set now, thanks!",
    "Actually, I'm good now. Thanks for sorting this out!",
    "Nope, you've been very helpful. Have a great day!",
    "That should do it. I appreciate your assistance!",
)

ORDER_REPLIES = (
    "I placed an order last week but haven't received a confirmation email.",
    "My order number is #12345. Can you check its status?",
    "I was supposed to get a tracking number but never received it.",
    "The payment went through but I'm not sure if the order was processed.",
)

APOLOGY_REPLIES = (
    "I appreciate that. Can you help me resolve this?",
    "Thank you. What can we do to fix this?",
    "Okay, what are the next steps?",
)

REFUND_REPLIES = (
    "Yes, a refund would be great. How long does that take?",
    "That works for me. When should I expect the refund?",
    "Okay, and will I need to return the item first?",
)

GENERIC_REPLIES = (
    "That sounds good, thank you!",
    "Great, I appreciate your help with this.",
    "Okay, that makes sense.",
    "Perfect, thanks for clarifying!",
    "Alright, I understand now.",
)

_BASE_PERSONA = """You are helping to simulate a customer service conversation by generating what a customer would say. The customer has an issue and is talking to a support agent.

IMPORTANT RULES:
- Generate realistic, brief customer responses (1-2 sentences MAXIMUM)
- You are a COOPERATIVE and REASONABLE customer
- When the agent provides a good solution, accept it with appreciation"""


def build_persona(conversation: Conversation) -> str:
    """System prompt for the simulated customer.

    The customer stops asking once it has asked one question, and may ask at
    most one clarifying question after two agent turns.
    """
    questions = sum(1 for m in conversation if m.is_customer and "?" in m.text)
    agent_turns = sum(1 for m in conversation if m.is_agent)

    lines = [_BASE_PERSONA]
    if questions >= 1:
        lines.append(
            f"- STOP ASKING QUESTIONS - You have already asked {questions} question(s). "
            "DO NOT ask any more questions."
        )
        lines.append("- Express satisfaction and thank the agent for their help")
        lines.append(
            '- Say things like "That\'s perfect, thank you!" or '
            '"Great, I understand now, thanks!"'
        )
    elif agent_turns >= 2:
        lines.append("- You may ask AT MOST 1 brief clarifying question if needed")
        lines.append("- After getting an answer, express satisfaction if the solution works for you")
    else:
        lines.append("- Describe your issue briefly in the first message")
    lines.append(
        "- Respond naturally to the agent's questions - be honest about whether "
        "you're satisfied or need more help"
    )
    lines.append("- You are the customer with a problem, NOT the helpful agent")
    return "\n".join(lines)


def build_prompt(conversation: Conversation) -> str:
    return (
        "Here is a customer service conversation:\n\n"
        f"{conversation.transcript()}\n\n"
        "Generate the customer's next response (what the customer would say next). "
        "Keep it brief (1-3 sentences). Remember, you are the CUSTOMER with a problem, "
        "not the support agent."
    )


def mock_reply(conversation: Conversation, rng: Optional[random.Random] = None) -> str:
    """Keyword-driven canned reply to the last message."""
    rng = rng or random.Random()
    last = conversation[len(conversation) - 1].text.lower() if len(conversation) else ""

    pool: Sequence[str]
    if "help" in last and "else" in last:
        pool = CLOSING_REPLIES
    elif "order" in last or len(conversation) <= 2:
        pool = ORDER_REPLIES
    elif "sorry" in last or "apologize" in last:
        pool = APOLOGY_REPLIES
    elif "refund" in last or "return" in last:
        pool = REFUND_REPLIES
    else:
        pool = GENERIC_REPLIES
    return rng.choice(pool)


class CustomerSimulator:
    """Generates simulated customer replies.

    Usage:
        simulator = CustomerSimulator()
        reply = await simulator.reply_after_delay(conversation)
    """

    def __init__(
        self,
        provider: Optional[CompletionProvider] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        use_llm: Optional[bool] = None,
    ):
        """Initialize the simulator.

        Args:
            provider: Chat-completion capability; built from settings when an
                API key or proxy is configured, otherwise mock replies are used
            settings: Sampling and delay settings (global settings if omitted)
            rng: Random source for mock replies and delays
            sleep: Awaitable sleep used for the reply delay
            use_llm: Force LLM (True) or mock (False) replies
        """
        self.settings = settings or get_settings()
        if use_llm is None:
            use_llm = provider is not None or bool(
                self.settings.openai_api_key or self.settings.uses_proxy
            )
        if use_llm and provider is None:
            from autoclose.providers.openai_http import create_completion_provider

            provider = create_completion_provider(
                self.settings, model_name=self.settings.simulator_model
            )
        self.provider = provider if use_llm else None
        self.rng = rng or random.Random()
        self._sleep = sleep

    async def generate_reply(self, conversation: Conversation) -> str:
        """Next customer reply for ``conversation``. Never raises."""
        if self.provider is None:
            logger.debug("No completion provider configured, using mock customer reply")
            return mock_reply(conversation, self.rng)
        try:
            reply = await self.provider.complete(
                build_persona(conversation),
                build_prompt(conversation),
                temperature=self.settings.simulator_temperature,
                max_tokens=self.settings.simulator_max_tokens,
            )
        except Exception as e:
            logger.warning(f"Customer simulation failed, using mock reply: {e}")
            return mock_reply(conversation, self.rng)
        if not isinstance(reply, str) or not reply.strip():
            return mock_reply(conversation, self.rng)
        return reply.strip()

    def reply_delay(self) -> float:
        low = self.settings.simulator_min_delay
        high = max(low, self.settings.simulator_max_delay)
        return self.rng.uniform(low, high)

    async def reply_after_delay(self, conversation: Conversation) -> str:
        """Generate a reply, then wait a human-like delay before returning it."""
        reply = await self.generate_reply(conversation)
        delay = self.reply_delay()
        logger.debug(f"Simulated customer replies in {delay:.1f}s")
        await self._sleep(delay)
        return reply

