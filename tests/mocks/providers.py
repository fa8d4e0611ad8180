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

"""Deterministic stand-ins for the remote capabilities, plus a fake clock.

Usage:
    from tests.mocks.providers import FakeEmbeddingProvider, FakeCompletionProvider

    # Bag-of-words vectors: identical texts score 1.0, disjoint words 0.0
    provider = FakeEmbeddingProvider()
    service = EmbeddingService(provider)

    # Scripted completions
    completer = FakeCompletionProvider(["satisfied", "needs_help"])
"""

import asyncio
import re
import zlib
from typing import List, Optional, Sequence, Set, Union

from autoclose.core.errors import ClassificationUnavailableError, EmbeddingUnavailableError

WORD_RE = re.compile(r"[a-z']+")


def bag_of_words(text: str, dimension: int) -> List[float]:
    vector = [0.0] * dimension
    for word in WORD_RE.findall(text.lower()):
        vector[zlib.crc32(word.encode("utf-8")) % dimension] += 1.0
    return vector


class FakeEmbeddingProvider:
    """Embedding provider returning hashed bag-of-words vectors.

    Args:
        dimension: Vector length
        fail: Raise EmbeddingUnavailableError on every call
        fail_on: Texts that raise EmbeddingUnavailableError
        gate: Event each call waits on before answering (for concurrency tests)
    """

    model_name = "fake-embedding"

    def __init__(
        self,
        dimension: int = 256,
        fail: bool = False,
        fail_on: Optional[Set[str]] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.dimension = dimension
        self.fail = fail
        self.fail_on = set(fail_on or ())
        self.gate = gate
        self.calls: List[str] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def embed(self, text: str) -> Sequence[float]:
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail or text in self.fail_on:
            raise EmbeddingUnavailableError("fake embedding outage", provider="fake")
        return bag_of_words(text, self.dimension)


class FakeCompletionProvider:
    """Completion provider replaying scripted outputs.

    A single string is returned for every call; a list is consumed in order
    and the last entry repeats. An exception instance is raised instead.
    """

    model_name = "fake-completion"

    def __init__(
        self,
        responses: Union[str, Sequence[str]] = "uncertain",
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.responses = [responses] if isinstance(responses, str) else list(responses)
        self.error = error
        self.gate = gate
        self.calls: List[dict] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return self.responses[index]


def failing_completion_provider() -> FakeCompletionProvider:
    return FakeCompletionProvider(error=ClassificationUnavailableError("fake outage"))


class FakeClock:
    """Monotonic clock under test control (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHandle:
    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """``call_later`` replacement that records callbacks instead of running them."""

    def __init__(self):
        self.handles: List[FakeHandle] = []

    def __call__(self, delay: float, callback) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    def run_active(self) -> None:
        """Invoke every pending callback once (as if its delay elapsed)."""
        for handle in self.active:
            handle.cancelled = True
            handle.callback()
