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

"""Auto-close timer engine.

One engine per conversation. It consumes agent and customer messages,
asks the closure detector and intent classifier for decisions, and drives
the countdown:

    IDLE --closure--> COUNTING_DOWN(standard) --satisfied--> COUNTING_DOWN(fast)
      ^                   |   ^                                   |
      |               typing  resume                              |
      |                   v   |                                   |
      +---needs_help/--- PAUSED                                   |
          revert                                                  v
                                        elapsed >= target ----> FIRED

The countdown is a monotonic deadline with explicit pause accounting. A
single scheduled callback per conversation fires at the projected deadline
and re-checks through ``poll()``; starting any countdown cancels the
previous callback first.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from autoclose.classification.intent_classifier import (
    ClassificationResult,
    IntentClassifier,
    ResponseLabel,
)
from autoclose.config.settings import Settings, get_settings
from autoclose.conversation import Conversation
from autoclose.core.errors import EngineClosedError
from autoclose.detection.closure_detector import ClosureDetector, DetectionOutcome
from autoclose.events import AIEventLog
from autoclose.timer.idle import IdleNudgeMonitor, NudgeListener
from autoclose.timer.state import CloseCause, CloseMode, TimerPhase, TimerState

logger = logging.getLogger(__name__)

CANCEL_NEEDS_HELP = "needs_help"
CANCEL_MANUAL_REVERT = "manual_revert"

FiredCallback = Callable[[CloseCause, CloseMode], None]
CanceledCallback = Callable[[str], None]
PhaseCallback = Callable[[TimerPhase], None]
Scheduler = Callable[[float, Callable[[], None]], Any]


def _loop_call_later(delay: float, callback: Callable[[], None]) -> Optional[asyncio.TimerHandle]:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # No loop: the owner drives the engine through poll()
        return None
    return loop.call_later(delay, callback)


def _cancel_handle(handle: Any) -> None:
    if handle is not None:
        handle.cancel()


class ClosureTimerEngine:
    """Closure-aware auto-close countdown for one conversation.

    Usage:
        engine = ClosureTimerEngine(detector, classifier)
        engine.on_fired(lambda cause, mode: print("closed", cause, mode))

        await engine.handle_agent_message("Is there anything else I can help with?")
        await engine.handle_customer_message("No, that's all. Thanks!")
        # -> fast close, fires 15s later unless the agent types or reverts
    """

    def __init__(
        self,
        detector: ClosureDetector,
        classifier: IntentClassifier,
        conversation: Optional[Conversation] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        event_log: Optional[AIEventLog] = None,
        call_later: Optional[Scheduler] = None,
        is_customer_busy: Optional[Callable[[], bool]] = None,
    ):
        """Initialize timer engine.

        Args:
            detector: Closure statement detector
            classifier: Customer intent classifier
            conversation: Conversation to drive (new if omitted)
            settings: Durations (global settings if omitted)
            clock: Monotonic clock in seconds
            event_log: Optional decision log for the inspector
            call_later: ``(delay, callback) -> handle`` scheduler; defaults to
                the running event loop's ``call_later``
            is_customer_busy: Suppresses the idle nudge while a reply is pending
        """
        settings = settings or get_settings()
        self.detector = detector
        self.classifier = classifier
        self.conversation = conversation if conversation is not None else Conversation()
        self.event_log = event_log
        self._clock = clock
        self._call_later = call_later or _loop_call_later

        self.standard_ms = int(settings.standard_close_ms)
        self.fast_ms = int(settings.fast_close_ms)
        self.typing_debounce = settings.typing_debounce_seconds

        self._state = TimerState()
        self._closed = False
        self._close_cause: Optional[CloseCause] = None
        self._issue_resolved = False
        self._has_ever_detected = False

        self._fire_handle: Any = None
        self._typing_handle: Any = None
        self._idle_task: Optional[asyncio.Task] = None

        self.idle_monitor = IdleNudgeMonitor(
            self.conversation,
            clock=clock,
            nudge_after=settings.idle_nudge_seconds,
            is_customer_busy=is_customer_busy,
            event_log=event_log,
        )

        self._fired_callbacks: List[FiredCallback] = []
        self._canceled_callbacks: List[CanceledCallback] = []
        self._phase_callbacks: List[PhaseCallback] = []

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def phase(self) -> TimerPhase:
        return self._state.phase

    @property
    def mode(self) -> CloseMode:
        return self._state.mode

    @property
    def remaining_ms(self) -> float:
        return self._state.remaining_ms(self._clock())

    @property
    def total_ms(self) -> int:
        return self._state.total_ms

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def close_cause(self) -> Optional[CloseCause]:
        return self._close_cause

    @property
    def issue_resolved(self) -> bool:
        return self._issue_resolved

    @property
    def has_ever_detected(self) -> bool:
        return self._has_ever_detected

    @property
    def last_classified_index(self) -> int:
        return self._state.last_classified_index

    @property
    def generation(self) -> int:
        return self._state.generation

    @property
    def state(self) -> TimerState:
        """Copy of the current timer state."""
        return dataclasses.replace(self._state)

    def snapshot(self) -> Dict[str, Any]:
        data = self._state.to_dict(self._clock())
        data.update(
            {
                "closed": self._closed,
                "closeCause": self._close_cause.value if self._close_cause else None,
                "issueResolved": self._issue_resolved,
                "hasEverDetected": self._has_ever_detected,
            }
        )
        return data

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_fired(self, callback: FiredCallback) -> Callable[[], None]:
        """Called with (cause, mode) when the contact closes."""
        return self._subscribe(self._fired_callbacks, callback)

    def on_canceled(self, callback: CanceledCallback) -> Callable[[], None]:
        """Called with the reason when a countdown is canceled."""
        return self._subscribe(self._canceled_callbacks, callback)

    def on_phase_changed(self, callback: PhaseCallback) -> Callable[[], None]:
        return self._subscribe(self._phase_callbacks, callback)

    def on_nudge(self, listener: NudgeListener) -> Callable[[], None]:
        return self.idle_monitor.on_nudge(listener)

    @staticmethod
    def _subscribe(callbacks: List[Any], callback: Any) -> Callable[[], None]:
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def _emit(self, callbacks: List[Any], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception as e:
                logger.warning(f"Timer callback failed: {e}")

    def _set_phase(self, phase: TimerPhase) -> None:
        if self._state.phase is phase:
            return
        self._state.phase = phase
        self._emit(self._phase_callbacks, phase)

    def _log_timer(self, event: str, reason: str, **extra: Any) -> None:
        if self.event_log is None:
            return
        data = {"event": event, "reason": reason, "mode": self._state.mode.value}
        data.update(extra)
        self.event_log.log_timer_change(data)

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise EngineClosedError("conversation is closed")

    async def handle_agent_message(self, text: str) -> DetectionOutcome:
        """Record an agent message and start the countdown on a closure.

        A closure while already counting down does not restart the timer; it
        only re-arms classification for the next customer reply.

        Raises:
            EngineClosedError: If the conversation is already closed
        """
        self._ensure_open()
        self.idle_monitor.mark_agent_activity()
        # Sending ends any typing pause
        _cancel_handle(self._typing_handle)
        self._typing_handle = None
        self.resume()

        try:
            outcome = await self.detector.detect(text, include_details=True)
        except Exception as e:
            logger.exception(f"Closure detection failed unexpectedly: {e}")
            outcome = DetectionOutcome(is_closure=False)

        if self._closed:
            logger.debug("Agent message dropped, contact closed during detection")
            return outcome

        self.conversation.add_agent_message(text)
        if self.event_log is not None and outcome.details is not None:
            self.event_log.log_closure_detection(outcome.details.to_dict())

        if not outcome.is_closure:
            return outcome

        self._state.last_classified_index = -1
        if self._state.phase is TimerPhase.IDLE:
            self._has_ever_detected = True
            self._issue_resolved = True
            self.idle_monitor.disable()
            self._state.mode = CloseMode.STANDARD
            self._start_countdown(self.standard_ms)
            logger.info(
                f"Closure statement detected, contact closes in {self.standard_ms / 1000:.0f}s"
            )
            self._log_timer(
                "Timer Started",
                "Closure statement detected",
                durationMs=self.standard_ms,
            )
        else:
            logger.debug("Closure statement repeated, timer continues")
        return outcome

    async def handle_customer_message(self, text: str) -> Optional[ClassificationResult]:
        """Record a customer message and classify it during a countdown.

        Each customer message is classified at most once, and only while the
        countdown is active. A result that arrives after the countdown was
        canceled or fired is returned but not applied. A fast-close restart
        does not make it stale.

        Returns:
            ClassificationResult, or None when no classification ran
        """
        if self._closed:
            logger.debug("Customer message after close ignored")
            return None

        index = self.conversation.add_customer_message(text)
        if not self._state.phase.is_active or index <= self._state.last_classified_index:
            return None

        self._state.last_classified_index = index
        generation = self._state.generation
        logger.debug(f"Classifying customer message {index} during countdown")

        try:
            result = await self.classifier.classify(self.conversation, include_details=True)
        except Exception as e:
            logger.exception(f"Classification failed unexpectedly: {e}")
            result = ClassificationResult(label=ResponseLabel.UNCERTAIN, error=str(e))

        if self.event_log is not None:
            self.event_log.log_classification(result.to_dict())

        if generation != self._state.generation or not self._state.phase.is_active:
            logger.debug(f"Discarding stale classification for message {index}")
            return result

        if result.label is ResponseLabel.NEEDS_HELP:
            self._cancel(CANCEL_NEEDS_HELP)
            self._log_timer(
                "Timer Canceled",
                'Customer classified as "needs_help"',
            )
        elif result.label is ResponseLabel.SATISFIED:
            self.switch_to_fast()
        else:
            logger.debug("Customer response uncertain, timer continues")
        return result

    # ------------------------------------------------------------------
    # Countdown control
    # ------------------------------------------------------------------

    def _start_countdown(self, total_ms: int) -> None:
        _cancel_handle(self._fire_handle)
        self._fire_handle = None
        previous = self._state.phase
        self._state.start(total_ms, self._clock())
        if self._state.phase is not previous:
            self._emit(self._phase_callbacks, self._state.phase)
        self._schedule()

    def _schedule(self) -> None:
        _cancel_handle(self._fire_handle)
        self._fire_handle = None
        if self._state.phase is not TimerPhase.COUNTING_DOWN:
            return
        delay = self._state.remaining_ms(self._clock()) / 1000.0
        self._fire_handle = self._call_later(delay, self.poll)

    def poll(self) -> bool:
        """Fire if the non-paused elapsed time has reached the target.

        Returns:
            True if the contact closed on this call
        """
        if self._state.phase is not TimerPhase.COUNTING_DOWN:
            return False
        if self._state.remaining_ms(self._clock()) > 0:
            self._schedule()
            return False
        self._fire(CloseCause.AUTO)
        return True

    def switch_to_fast(self) -> bool:
        """Shorten the countdown after a satisfied reply.

        The mode becomes FAST either way. A fresh fast window only starts
        when more than the fast duration remains.

        Returns:
            True if the countdown restarted
        """
        if not self._state.phase.is_active:
            return False
        self._state.mode = CloseMode.FAST
        remaining = self._state.remaining_ms(self._clock())
        if remaining <= self.fast_ms:
            logger.debug(f"Fast close requested with {remaining:.0f}ms left, no restart")
            return False

        self._start_countdown(self.fast_ms)
        logger.info(f"Customer satisfied, switching to fast close ({self.fast_ms / 1000:.0f}s)")
        self._log_timer(
            "Timer Switched to Fast Close",
            'Customer classified as "satisfied"',
            durationMs=self.fast_ms,
            previousRemainingMs=round(remaining),
        )
        return True

    def pause(self) -> bool:
        """Suspend elapsed-time accrual. Returns True if the state changed."""
        if self._state.phase is not TimerPhase.COUNTING_DOWN:
            return False
        self._state.paused_at = self._clock()
        _cancel_handle(self._fire_handle)
        self._fire_handle = None
        self._set_phase(TimerPhase.PAUSED)
        logger.debug("Countdown paused")
        return True

    def resume(self) -> bool:
        """Resume a paused countdown. Returns True if the state changed."""
        if self._state.phase is not TimerPhase.PAUSED:
            return False
        now = self._clock()
        if self._state.paused_at is not None:
            self._state.accumulated_paused += now - self._state.paused_at
        self._state.paused_at = None
        self._set_phase(TimerPhase.COUNTING_DOWN)
        logger.debug("Countdown resumed")
        self._schedule()
        return True

    def typing_changed(self, text: str) -> None:
        """Agent input changed: pause while typing, resume after the debounce."""
        if not self._state.phase.is_active:
            return
        _cancel_handle(self._typing_handle)
        self._typing_handle = None
        if text:
            self.pause()
            self._typing_handle = self._call_later(self.typing_debounce, self._typing_stopped)
        else:
            self.resume()

    def _typing_stopped(self) -> None:
        self._typing_handle = None
        self.resume()

    def _cancel(self, reason: str) -> None:
        _cancel_handle(self._fire_handle)
        _cancel_handle(self._typing_handle)
        self._fire_handle = None
        self._typing_handle = None
        self._issue_resolved = False
        self._state.clear()
        self._emit(self._phase_callbacks, TimerPhase.IDLE)
        logger.info(f"Auto-close canceled ({reason})")
        self._emit(self._canceled_callbacks, reason)

    def revert(self) -> bool:
        """Operator cancels a pending auto-close; the issue becomes unresolved.

        Returns:
            False when there was no countdown to revert
        """
        if not self._state.phase.is_active:
            return False
        self._cancel(CANCEL_MANUAL_REVERT)
        self._log_timer("Timer Canceled", "Auto-closure reverted by agent")
        return True

    def _fire(self, cause: CloseCause) -> None:
        _cancel_handle(self._fire_handle)
        _cancel_handle(self._typing_handle)
        self._fire_handle = None
        self._typing_handle = None
        self._closed = True
        self._close_cause = cause
        self.idle_monitor.disable()
        self._state.generation += 1
        mode = self._state.mode
        self._set_phase(TimerPhase.FIRED)
        logger.info(f"Contact closed ({cause.value}, {mode.value})")
        self._log_timer("Contact Closed", f"{cause.value} close", cause=cause.value)
        self._emit(self._fired_callbacks, cause, mode)

    def close_manually(self) -> bool:
        """Close immediately, bypassing the countdown.

        Returns:
            False if the contact was already closed
        """
        if self._closed:
            return False
        self._fire(CloseCause.MANUAL)
        return True

    # ------------------------------------------------------------------
    # Idle nudge and lifecycle
    # ------------------------------------------------------------------

    def check_idle(self) -> bool:
        """Inject "Are you there?" if the agent has been idle too long."""
        if self._closed:
            return False
        return self.idle_monitor.check()

    def start_idle_monitor(self, interval: float = 1.0) -> asyncio.Task:
        """Run the idle check in the background until the engine closes."""
        if self._idle_task is None or self._idle_task.done():
            self._idle_task = asyncio.get_running_loop().create_task(
                self.idle_monitor.run(interval)
            )
        return self._idle_task

    def close(self) -> None:
        """Release scheduled callbacks and the idle task (conversation discarded)."""
        _cancel_handle(self._fire_handle)
        _cancel_handle(self._typing_handle)
        self._fire_handle = None
        self._typing_handle = None
        self.idle_monitor.disable()
        if self._idle_task is not None and not self._idle_task.done():
            self._idle_task.cancel()
        self._idle_task = None
