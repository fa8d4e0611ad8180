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

"""Auto-close timer state.

All instants are seconds on a monotonic clock. Time spent paused is
accumulated separately and excluded from elapsed time, so a pause never
loses countdown progress.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class TimerPhase(str, Enum):
    """Countdown lifecycle.

    IDLE: no closure pending (initial state, and after any cancel)
    COUNTING_DOWN: closure detected, elapsed time accrues
    PAUSED: countdown suspended while the agent types
    FIRED: contact closed (terminal)
    """

    IDLE = "idle"
    COUNTING_DOWN = "counting_down"
    PAUSED = "paused"
    FIRED = "fired"

    @property
    def is_active(self) -> bool:
        return self in (TimerPhase.COUNTING_DOWN, TimerPhase.PAUSED)


class CloseMode(str, Enum):
    STANDARD = "standard"
    FAST = "fast"


class CloseCause(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


@dataclass
class TimerState:
    """Mutable countdown state for one conversation.

    ``last_classified_index`` is the index of the newest customer message
    already sent to the classifier (-1 when none since the last closure).
    ``generation`` increments when a countdown begins from IDLE, is canceled
    or fires. Restarting the window for a fast close keeps the generation,
    so classifications already in flight still apply. Async results
    captured under an older generation are stale.
    """

    phase: TimerPhase = TimerPhase.IDLE
    mode: CloseMode = CloseMode.STANDARD
    total_ms: int = 0
    started_at: Optional[float] = None
    paused_at: Optional[float] = None
    accumulated_paused: float = 0.0
    last_classified_index: int = -1
    generation: int = 0

    def elapsed_ms(self, now: float) -> float:
        """Non-paused time since the countdown started."""
        if self.started_at is None:
            return 0.0
        paused = self.accumulated_paused
        if self.paused_at is not None:
            paused += now - self.paused_at
        return max(0.0, (now - self.started_at - paused) * 1000.0)

    def remaining_ms(self, now: float) -> float:
        if self.started_at is None:
            return 0.0
        return max(0.0, self.total_ms - self.elapsed_ms(now))

    def start(self, total_ms: int, now: float) -> None:
        """Begin a fresh window, staying paused if currently paused."""
        if not self.phase.is_active:
            self.generation += 1
        self.total_ms = total_ms
        self.started_at = now
        self.accumulated_paused = 0.0
        self.paused_at = now if self.phase is TimerPhase.PAUSED else None
        if self.phase is not TimerPhase.PAUSED:
            self.phase = TimerPhase.COUNTING_DOWN

    def clear(self) -> None:
        """Drop the countdown and return to IDLE."""
        self.phase = TimerPhase.IDLE
        self.mode = CloseMode.STANDARD
        self.total_ms = 0
        self.started_at = None
        self.paused_at = None
        self.accumulated_paused = 0.0
        self.last_classified_index = -1
        self.generation += 1

    def to_dict(self, now: float) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "mode": self.mode.value,
            "totalMs": self.total_ms,
            "remainingMs": round(self.remaining_ms(now)),
            "lastClassifiedIndex": self.last_classified_index,
            "generation": self.generation,
        }
