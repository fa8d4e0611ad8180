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

"""One simulated contact: timer engine plus simulated customer."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from autoclose.classification.intent_classifier import ClassificationResult, IntentClassifier
from autoclose.config.settings import Settings, get_settings
from autoclose.detection.closure_detector import ClosureDetector, DetectionOutcome
from autoclose.events import AIEventLog
from autoclose.simulation.customer import CustomerSimulator
from autoclose.timer.engine import ClosureTimerEngine

logger = logging.getLogger(__name__)


@dataclass
class Exchange:
    """Result of one agent turn and the customer's reply to it."""

    detection: DetectionOutcome
    reply: Optional[str] = None
    classification: Optional[ClassificationResult] = None


class ContactSession:
    """Drives a conversation between a live agent and a simulated customer.

    Usage:
        session = ContactSession(detector, classifier)
        exchange = await session.send_agent_message("Anything else I can help with?")
        print(exchange.reply, session.engine.phase)
    """

    def __init__(
        self,
        detector: ClosureDetector,
        classifier: IntentClassifier,
        simulator: Optional[CustomerSimulator] = None,
        settings: Optional[Settings] = None,
        event_log: Optional[AIEventLog] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = settings or get_settings()
        self.event_log = event_log if event_log is not None else AIEventLog()
        self.simulator = simulator or CustomerSimulator(settings=settings)
        self._customer_typing = False
        self.engine = ClosureTimerEngine(
            detector,
            classifier,
            settings=settings,
            clock=clock,
            event_log=self.event_log,
            is_customer_busy=lambda: self._customer_typing,
        )

    @property
    def conversation(self):
        return self.engine.conversation

    @property
    def is_customer_typing(self) -> bool:
        return self._customer_typing

    @property
    def is_closed(self) -> bool:
        return self.engine.is_closed

    def start(self, idle_interval: float = 1.0) -> None:
        """Start the idle monitor for this contact."""
        self.engine.start_idle_monitor(idle_interval)

    async def send_agent_message(self, text: str) -> Exchange:
        """Send an agent message and wait for the simulated customer's reply.

        Raises:
            EngineClosedError: If the contact is already closed
        """
        detection = await self.engine.handle_agent_message(text)
        exchange = Exchange(detection=detection)
        if self.engine.is_closed:
            return exchange

        self._customer_typing = True
        try:
            reply = await self.simulator.reply_after_delay(self.conversation)
        finally:
            self._customer_typing = False

        if self.engine.is_closed:
            logger.debug("Contact closed while the customer was typing, reply dropped")
            return exchange

        exchange.reply = reply
        self.event_log.log_customer_message({"message": reply})
        exchange.classification = await self.engine.handle_customer_message(reply)
        return exchange

    def close(self) -> None:
        self.engine.close()
