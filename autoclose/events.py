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

"""Bounded log of AI decisions for the inspector panel.

Every closure detection, classification and timer transition is recorded
here so an operator can see why a contact closed (or did not). The log is
newest-first and keeps the most recent ``max_events`` entries.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 50


class AIEventType(str, Enum):
    CLOSURE_DETECTION = "closure_detection"
    CLASSIFICATION = "classification"
    TIMER_CHANGE = "timer_change"
    CUSTOMER_MESSAGE = "customer_message"
    IDLE_DETECTION = "idle_detection"


_TITLES = {
    AIEventType.CLOSURE_DETECTION: "Closure Detected",
    AIEventType.CLASSIFICATION: "LLM Classification",
    AIEventType.TIMER_CHANGE: "Timer State Change",
    AIEventType.CUSTOMER_MESSAGE: "Customer Message Generated",
    AIEventType.IDLE_DETECTION: "Idle Detection Triggered",
}


@dataclass(frozen=True)
class AIEvent:
    """One recorded decision."""

    event_type: AIEventType
    title: str
    data: Dict[str, Any]
    id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.event_type.value,
            "title": self.title,
            "timestamp": self.timestamp.isoformat(),
            "data": dict(self.data),
        }


EventListener = Callable[[List[AIEvent]], None]


class AIEventLog:
    """Newest-first, bounded event log with change subscribers.

    Usage:
        log = AIEventLog()
        unsubscribe = log.subscribe(lambda events: render(events))
        log.log_timer_change({"action": "started", "duration": 60000})
        unsubscribe()
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS):
        if max_events < 1:
            raise ValueError(f"max_events must be positive, got {max_events}")
        self.max_events = max_events
        self._events: List[AIEvent] = []
        self._listeners: List[EventListener] = []
        self._ids = itertools.count(1)

    @property
    def events(self) -> List[AIEvent]:
        """Snapshot of recorded events, newest first."""
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def log_event(
        self,
        event_type: AIEventType,
        data: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
    ) -> AIEvent:
        """Record an event and notify subscribers."""
        event = AIEvent(
            event_type=event_type,
            title=title or _TITLES[event_type],
            data=dict(data or {}),
            id=f"evt-{next(self._ids)}",
        )
        self._events.insert(0, event)
        del self._events[self.max_events :]
        logger.debug(f"[AIEventLog] {event.event_type.value}: {event.data}")
        self._notify()
        return event

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener; it immediately receives the current events.

        Returns:
            Callable that removes the listener (safe to call twice)
        """
        self._listeners.append(listener)
        self._call(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        self._events = []
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            self._call(listener)

    def _call(self, listener: EventListener) -> None:
        try:
            listener(self.events)
        except Exception as e:
            logger.warning(f"Event listener failed: {e}")

    def log_closure_detection(self, data: Dict[str, Any]) -> AIEvent:
        return self.log_event(AIEventType.CLOSURE_DETECTION, data)

    def log_classification(self, data: Dict[str, Any]) -> AIEvent:
        return self.log_event(AIEventType.CLASSIFICATION, data)

    def log_timer_change(self, data: Dict[str, Any]) -> AIEvent:
        return self.log_event(AIEventType.TIMER_CHANGE, data)

    def log_customer_message(self, data: Dict[str, Any]) -> AIEvent:
        return self.log_event(AIEventType.CUSTOMER_MESSAGE, data)

    def log_idle_detection(self, data: Dict[str, Any]) -> AIEvent:
        return self.log_event(AIEventType.IDLE_DETECTION, data)
