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

"""Customer intent classification after a closure statement.

Once the agent has sent a closure statement, the customer's next reply is
classified into one of three labels:
- needs_help: another issue, unhappy, wants to continue
- satisfied: done, declines further help
- uncertain: ambiguous, off-topic or unclear

The label comes from a chat-completion model. Any output outside the closed
set, and any transport failure, becomes ``uncertain`` so a bad response can
neither escalate nor close a contact on its own.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from autoclose.conversation import Conversation
from autoclose.core.errors import InvalidLabelError
from autoclose.providers.protocols import CompletionProvider

logger = logging.getLogger(__name__)


class ResponseLabel(str, Enum):
    """Closed set of customer intents."""

    NEEDS_HELP = "needs_help"
    SATISFIED = "satisfied"
    UNCERTAIN = "uncertain"


VALID_LABELS = frozenset(label.value for label in ResponseLabel)


SYSTEM_PROMPT = """You are analyzing a customer service conversation to determine the customer's intent after the agent has provided a closure statement (like "Is there anything else I can help you with?").

Your task is to classify the customer's MOST RECENT response into one of three categories:

1. "needs_help" - Customer indicates they need MORE help, have ANOTHER issue, are unhappy with the resolution, or want to continue the conversation
   Examples:
   - "Wait, I have another question"
   - "Actually, that didn't work"
   - "I'm still having problems"
   - "Yes, I need help with..."
   - "Can you help me with something else?"
   - "What about..."

2. "satisfied" - Customer indicates they are DONE, satisfied, have NO MORE issues, or are declining further assistance
   Examples:
   - "No, that's all. Thank you!"
   - "Nope, I'm good"
   - "No, thank you for your help"
   - "Thanks for your assistance"
   - "Perfect, that worked!"
   - "All set, thanks"
   - "I appreciate your help"
   - Any response that clearly says "no" to needing more help

3. "uncertain" - The response is ambiguous, off-topic, or unclear about whether they need more help
   Examples:
   - "ok"
   - "sure"
   - "alright"
   - Single word responses without clear intent

CRITICAL RULES:
- If the customer says "No" or "Nope" in response to "anything else?", classify as "satisfied"
- If the customer says "thank you" WITHOUT mentioning a new issue, classify as "satisfied"
- If the customer mentions a NEW issue or problem, classify as "needs_help"
- Focus on the customer's MOST RECENT message after the closure question

Respond with ONLY one word: "needs_help", "satisfied", or "uncertain\""""

USER_PROMPT_TEMPLATE = (
    "Here is the conversation:\n\n{transcript}\n\n"
    "Classify the customer's overall intent based on their most recent "
    "messages after the closure statement."
)


def build_user_prompt(conversation: Conversation) -> str:
    return USER_PROMPT_TEMPLATE.format(transcript=conversation.transcript())


def normalize_label(raw: Any) -> Tuple[ResponseLabel, bool]:
    """Map raw model output onto the closed label set.

    Trims whitespace, surrounding quotes and a trailing period, and ignores
    case. Anything else is ``uncertain``.

    Returns:
        (label, is_valid) where is_valid tells whether the raw output was
        already one of the three labels
    """
    if not isinstance(raw, str):
        return ResponseLabel.UNCERTAIN, False
    cleaned = raw.strip().strip("\"'`").strip().rstrip(".").strip().lower()
    if cleaned in VALID_LABELS:
        return ResponseLabel(cleaned), True
    return ResponseLabel.UNCERTAIN, False


@dataclass
class ClassificationResult:
    """Label plus diagnostics for one classification call."""

    label: ResponseLabel
    customer_message: str = ""
    raw_output: Optional[str] = None
    is_valid: bool = False
    error: Optional[str] = None
    model: Optional[str] = None
    system_prompt: str = ""
    user_prompt: str = ""
    context_size: int = 0
    latency_ms: float = 0.0

    @property
    def classification(self) -> str:
        return self.label.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "classification": self.label.value,
            "customerMessage": self.customer_message,
            "llmResponse": self.raw_output,
            "isValid": self.is_valid,
            "error": self.error,
            "model": self.model,
            "conversationContext": self.context_size,
            "latencyMs": round(self.latency_ms, 1),
        }


class IntentClassifier:
    """LLM-backed classifier for the customer's reply to a closure statement.

    Usage:
        classifier = IntentClassifier(provider)
        label = await classifier.classify(conversation)
        result = await classifier.classify(conversation, include_details=True)
    """

    def __init__(
        self,
        provider: Optional[CompletionProvider] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        """Initialize intent classifier.

        Args:
            provider: Chat-completion capability (built from settings if omitted)
            temperature: Sampling temperature (settings default 0.3)
            max_tokens: Output cap (settings default 10; the label is one word)
            system_prompt: Classification instructions
        """
        from autoclose.config.settings import get_settings

        settings = get_settings()
        if provider is None:
            from autoclose.providers.openai_http import create_completion_provider

            provider = create_completion_provider(settings)
        self.provider = provider
        self.temperature = settings.classifier_temperature if temperature is None else temperature
        self.max_tokens = settings.classifier_max_tokens if max_tokens is None else max_tokens
        self.system_prompt = system_prompt

    @property
    def model_name(self) -> str:
        return getattr(self.provider, "model_name", "unknown")

    async def classify(
        self,
        conversation: Conversation,
        include_details: bool = False,
    ) -> Union[ResponseLabel, ClassificationResult]:
        """Classify the most recent customer message in ``conversation``.

        Never raises: transport failures and malformed output become
        ``uncertain``.

        Args:
            conversation: Full conversation, chronological
            include_details: Return a ClassificationResult instead of a label

        Returns:
            ResponseLabel, or ClassificationResult when ``include_details`` is True
        """
        result = await self._classify(conversation)
        return result if include_details else result.label

    async def _classify(self, conversation: Conversation) -> ClassificationResult:
        last_customer = conversation.last_customer_message()
        if last_customer is None:
            logger.debug("No customer message to classify, returning uncertain")
            return ClassificationResult(
                label=ResponseLabel.UNCERTAIN,
                error="no customer message",
                model=self.model_name,
                context_size=len(conversation),
            )

        user_prompt = build_user_prompt(conversation)
        start = time.perf_counter()
        try:
            raw = await self.provider.complete(
                self.system_prompt,
                user_prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            # ClassificationUnavailableError in practice; any failure is recovered
            logger.warning(f"Error classifying customer response: {e}")
            return ClassificationResult(
                label=ResponseLabel.UNCERTAIN,
                customer_message=last_customer.text,
                error=str(e),
                model=self.model_name,
                system_prompt=self.system_prompt,
                user_prompt=user_prompt,
                context_size=len(conversation),
                latency_ms=(time.perf_counter() - start) * 1000,
            )
        latency_ms = (time.perf_counter() - start) * 1000

        label, is_valid = normalize_label(raw)
        error = None
        if is_valid:
            logger.info(f"Customer response classified as: {label.value}")
        else:
            error = InvalidLabelError(str(raw)).message
            logger.warning(f"{error}, defaulting to uncertain")

        return ClassificationResult(
            label=label,
            customer_message=last_customer.text,
            raw_output=raw if isinstance(raw, str) else repr(raw),
            is_valid=is_valid,
            error=error,
            model=self.model_name,
            system_prompt=self.system_prompt,
            user_prompt=user_prompt,
            context_size=len(conversation),
            latency_ms=latency_ms,
        )
