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

"""Closure-aware auto-close countdown."""

from autoclose.timer.engine import (
    CANCEL_MANUAL_REVERT,
    CANCEL_NEEDS_HELP,
    ClosureTimerEngine,
)
from autoclose.timer.idle import NUDGE_MESSAGE, IdleNudgeMonitor
from autoclose.timer.state import CloseCause, CloseMode, TimerPhase, TimerState

__all__ = [
    "CANCEL_MANUAL_REVERT",
    "CANCEL_NEEDS_HELP",
    "NUDGE_MESSAGE",
    "CloseCause",
    "CloseMode",
    "ClosureTimerEngine",
    "IdleNudgeMonitor",
    "TimerPhase",
    "TimerState",
]
