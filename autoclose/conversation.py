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

"""Conversation data model shared by the detector, classifier and timer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional


class Speaker(str, Enum):
    """Who sent a message."""

    AGENT = "agent"
    CUSTOMER = "customer"

    @property
    def label(self) -> str:
        return "Customer" if self is Speaker.CUSTOMER else "Agent"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    """A single chat message. Immutable once created."""

    text: str
    speaker: Speaker
    sent_at: datetime = field(default_factory=_utcnow)

    @property
    def is_customer(self) -> bool:
        return self.speaker is Speaker.CUSTOMER

    @property
    def is_agent(self) -> bool:
        return self.speaker is Speaker.AGENT


class Conversation:
    """Append-only, ordered sequence of messages for one contact."""

    def __init__(self, messages: Optional[Iterable[Message]] = None):
        self._messages: List[Message] = list(messages or [])

    def append(self, message: Message) -> int:
        """Append a message and return its index."""
        self._messages.append(message)
        return len(self._messages) - 1

    def add_agent_message(self, text: str) -> int:
        return self.append(Message(text=text, speaker=Speaker.AGENT))

    def add_customer_message(self, text: str) -> int:
        return self.append(Message(text=text, speaker=Speaker.CUSTOMER))

    @classmethod
    def from_turns(cls, turns: Iterable[tuple]) -> "Conversation":
        """Build a conversation from ``(speaker, text)`` pairs.

        ``speaker`` may be a Speaker or its string value ("agent"/"customer").
        """
        conversation = cls()
        for speaker, text in turns:
            conversation.append(Message(text=text, speaker=Speaker(speaker)))
        return conversation

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def last_customer_index(self) -> int:
        """Index of the most recent customer message, or -1."""
        for index in range(len(self._messages) - 1, -1, -1):
            if self._messages[index].is_customer:
                return index
        return -1

    def last_customer_message(self) -> Optional[Message]:
        index = self.last_customer_index()
        return self._messages[index] if index >= 0 else None

    def transcript(self) -> str:
        """Speaker-labelled lines in chronological order."""
        return "\n".join(f"{m.speaker.label}: {m.text}" for m in self._messages)

    def to_role_messages(self) -> List[Dict[str, str]]:
        """Messages as ``{"role", "content"}`` dicts."""
        return [{"role": m.speaker.value, "content": m.text} for m in self._messages]
