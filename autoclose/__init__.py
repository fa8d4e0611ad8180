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

"""
autoclose - closure detection and intent-aware auto-close for support chats.

An agent's closure statement ("Is there anything else I can help you with?")
is detected with semantic embeddings; the customer's reply is classified by
an LLM, and a per-conversation timer closes the contact automatically.

Usage:
    from autoclose import ClosureDetector, IntentClassifier, ClosureTimerEngine

    engine = ClosureTimerEngine(ClosureDetector(), IntentClassifier())
    await engine.handle_agent_message("Anything else I can help with today?")
    await engine.handle_customer_message("No, that's all. Thanks!")
"""

__version__ = "0.1.0"

from autoclose.classification import ClassificationResult, IntentClassifier, ResponseLabel
from autoclose.config import Settings, get_settings, load_settings
from autoclose.conversation import Conversation, Message, Speaker
from autoclose.core.errors import AutoCloseError
from autoclose.detection import ClosureDetector, DetectionOutcome, DetectionResult
from autoclose.embeddings import EmbeddingService
from autoclose.events import AIEventLog
from autoclose.timer import CloseCause, CloseMode, ClosureTimerEngine, TimerPhase

__all__ = [
    "__version__",
    "AIEventLog",
    "AutoCloseError",
    "ClassificationResult",
    "CloseCause",
    "CloseMode",
    "ClosureDetector",
    "ClosureTimerEngine",
    "Conversation",
    "DetectionOutcome",
    "DetectionResult",
    "EmbeddingService",
    "IntentClassifier",
    "Message",
    "ResponseLabel",
    "Settings",
    "Speaker",
    "TimerPhase",
    "get_settings",
    "load_settings",
]
