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

"""Idle nudge: the customer asks "Are you there?" when the agent goes quiet.

The nudge only applies before the first closure detection. Once a closure
has ever been detected for the conversation the monitor disables itself
permanently, even if that closure is later canceled.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from autoclose.conversation import Conversation, Message, Speaker
from autoclose.events import AIEventLog

logger = logging.getLogger(__name__)

NUDGE_MESSAGE = "Are you there?"

NudgeListener = Callable[[Message], None]


class IdleNudgeMonitor:
    """Tracks agent inactivity for one conversation.

    Args:
        conversation: Conversation the nudge is appended to
        clock: Monotonic seconds (shared with the timer engine)
        nudge_after: Inactivity window in seconds
        is_customer_busy: Returns True while a simulated reply is pending
        event_log: Optional decision log
    """

    def __init__(
        self,
        conversation: Conversation,
        clock: Callable[[], float] = time.monotonic,
        nudge_after: float = 45.0,
        is_customer_busy: Optional[Callable[[], bool]] = None,
        event_log: Optional[AIEventLog] = None,
    ):
        self.conversation = conversation
        self._clock = clock
        self.nudge_after = nudge_after
        self._is_customer_busy = is_customer_busy or (lambda: False)
        self.event_log = event_log
        self._last_agent_activity = clock()
        self._disabled = False
        self._listeners: List[NudgeListener] = []

    @property
    def disabled(self) -> bool:
        return self._disabled

    @property
    def last_agent_activity(self) -> float:
        return self._last_agent_activity

    def seconds_idle(self, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        return now - self._last_agent_activity

    def mark_agent_activity(self, now: Optional[float] = None) -> None:
        self._last_agent_activity = self._clock() if now is None else now

    def disable(self) -> None:
        if not self._disabled:
            logger.debug("Idle nudge disabled")
        self._disabled = True

    def on_nudge(self, listener: NudgeListener) -> Callable[[], None]:
        """Register a nudge listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def check(self, now: Optional[float] = None) -> bool:
        """Inject the nudge if the agent has been idle long enough.

        Returns:
            True if a nudge message was appended
        """
        if self._disabled:
            return False
        now = self._clock() if now is None else now
        idle_for = now - self._last_agent_activity
        if idle_for < self.nudge_after or self._is_customer_busy():
            return False

        logger.info(f"Agent idle for {idle_for:.0f}s, injecting {NUDGE_MESSAGE!r}")
        message = Message(text=NUDGE_MESSAGE, speaker=Speaker.CUSTOMER)
        self.conversation.append(message)
        # Wait another full window before nudging again
        self._last_agent_activity = now

        if self.event_log is not None:
            self.event_log.log_idle_detection(
                {"idleTime": round(idle_for), "message": NUDGE_MESSAGE}
            )
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.warning(f"Nudge listener failed: {e}")
        return True

    async def run(self, interval: float = 1.0) -> None:
        """Check periodically until disabled or canceled."""
        logger.debug(f"Idle monitor started (interval={interval}s)")
        while not self._disabled:
            await asyncio.sleep(interval)
            self.check()
        logger.debug("Idle monitor stopped")
