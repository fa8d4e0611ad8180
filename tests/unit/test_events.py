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

"""Tests for the AI decision event log."""

from unittest.mock import MagicMock

import pytest

from autoclose.events import AIEventLog, AIEventType


class TestAIEventLog:
    def test_newest_first(self):
        log = AIEventLog()
        log.log_closure_detection({"n": 1})
        log.log_classification({"n": 2})

        assert [e.data["n"] for e in log.events] == [2, 1]
        assert log.events[0].event_type is AIEventType.CLASSIFICATION

    def test_default_titles(self):
        log = AIEventLog()
        assert log.log_timer_change({}).title == "Timer State Change"
        assert log.log_customer_message({}).title == "Customer Message Generated"
        assert log.log_idle_detection({}).title == "Idle Detection Triggered"

    def test_custom_title(self):
        event = AIEventLog().log_event(AIEventType.TIMER_CHANGE, {}, title="Custom")
        assert event.title == "Custom"

    def test_bounded(self):
        log = AIEventLog(max_events=3)
        for i in range(5):
            log.log_timer_change({"i": i})

        assert len(log) == 3
        assert [e.data["i"] for e in log.events] == [4, 3, 2]

    def test_unique_ids(self):
        log = AIEventLog()
        ids = {log.log_timer_change({}).id for _ in range(10)}
        assert len(ids) == 10

    def test_invalid_max_events(self):
        with pytest.raises(ValueError):
            AIEventLog(max_events=0)

    def test_data_is_copied(self):
        log = AIEventLog()
        data = {"k": 1}
        log.log_timer_change(data)
        data["k"] = 2

        assert log.events[0].data["k"] == 1

    def test_to_dict(self):
        event = AIEventLog().log_classification({"classification": "satisfied"})
        data = event.to_dict()

        assert data["type"] == "classification"
        assert data["title"] == "LLM Classification"
        assert data["data"] == {"classification": "satisfied"}
        assert "timestamp" in data


class TestSubscriptions:
    def test_replays_current_events(self):
        log = AIEventLog()
        log.log_timer_change({})
        listener = MagicMock()

        log.subscribe(listener)

        listener.assert_called_once()
        assert len(listener.call_args[0][0]) == 1

    def test_notified_on_change(self):
        log = AIEventLog()
        listener = MagicMock()
        log.subscribe(listener)

        log.log_timer_change({})
        log.clear()

        assert listener.call_count == 3
        assert listener.call_args[0][0] == []

    def test_unsubscribe(self):
        log = AIEventLog()
        listener = MagicMock()
        unsubscribe = log.subscribe(listener)
        unsubscribe()
        unsubscribe()

        log.log_timer_change({})

        assert listener.call_count == 1

    def test_listener_failure_is_contained(self):
        log = AIEventLog()
        log.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        healthy = MagicMock()
        log.subscribe(healthy)

        log.log_timer_change({})

        assert healthy.call_count == 2
        assert len(log) == 1
