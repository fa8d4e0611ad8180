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

"""Reference example collection for semantic closure detection.

A small, ordered list of closure sentences whose embeddings are computed
once and reused by every detection. Initialization follows an explicit
state machine:

    UNINITIALIZED --initialize()--> INITIALIZING --success--> READY
                                         |
                                         +--failure--> UNINITIALIZED

Concurrent ``initialize()`` calls while INITIALIZING await the same pass.
Adding an example drops back to UNINITIALIZED so the next call re-embeds
the whole list.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import numpy as np
import yaml

from autoclose.embeddings.service import EmbeddingService

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_EXAMPLES_FILE = DATA_DIR / "closure_examples.yaml"


def load_reference_examples(path: Optional[Path] = None) -> List[str]:
    """Load closure reference sentences from a YAML file.

    The file holds a mapping with an ``examples`` list of strings.

    Args:
        path: YAML file (defaults to the packaged closure examples)

    Returns:
        Stripped, non-empty example sentences in file order
    """
    source = path or DEFAULT_EXAMPLES_FILE
    with open(source, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    examples = data.get("examples", []) if isinstance(data, dict) else data
    return [str(e).strip() for e in examples if str(e).strip()]


class InitState(Enum):
    """Lifecycle of the reference embeddings."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class ReferenceSnapshot:
    """Examples and their embeddings, row-aligned."""

    examples: Tuple[str, ...]
    embeddings: np.ndarray


class ReferenceExampleSet:
    """Ordered closure examples with lazily computed, cached embeddings.

    Usage:
        references = ReferenceExampleSet(embedding_service)
        snapshot = await references.initialize()
        scores = cosine_similarity_matrix(query, snapshot.embeddings)
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        examples: Optional[Iterable[str]] = None,
    ):
        """Initialize the reference set.

        Args:
            embedding_service: Gateway used to embed the examples
            examples: Reference sentences (defaults to the packaged list)
        """
        self.embedding_service = embedding_service
        self._examples: List[str] = (
            [e.strip() for e in examples if e and e.strip()]
            if examples is not None
            else load_reference_examples()
        )
        self._state = InitState.UNINITIALIZED
        self._snapshot: Optional[ReferenceSnapshot] = None
        self._pending: Optional["asyncio.Future[ReferenceSnapshot]"] = None
        # Bumped on every mutation so an in-flight pass can tell it is stale
        self._version = 0

    @property
    def state(self) -> InitState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is InitState.READY

    @property
    def examples(self) -> List[str]:
        """Copy of the reference sentences, in order."""
        return list(self._examples)

    @property
    def size(self) -> int:
        return len(self._examples)

    def add(self, text: str) -> bool:
        """Append an example and invalidate cached embeddings.

        Args:
            text: Closure sentence; blank or non-string input is ignored

        Returns:
            True if the example was added
        """
        if not isinstance(text, str) or not text.strip():
            return False
        self._examples.append(text.strip())
        self.invalidate()
        logger.info(f"Added closure example #{len(self._examples)}: {text.strip()!r}")
        return True

    def invalidate(self) -> None:
        """Forget computed embeddings; the next initialize() re-embeds all."""
        self._version += 1
        self._snapshot = None
        self._pending = None
        self._state = InitState.UNINITIALIZED

    async def initialize(self) -> ReferenceSnapshot:
        """Embed every example exactly once.

        Returns:
            Snapshot of examples and their embedding matrix

        Raises:
            EmbeddingUnavailableError: If any example fails to embed. Nothing
                is kept and a later call retries from scratch.
        """
        if self._state is InitState.READY and self._snapshot is not None:
            return self._snapshot

        if self._state is InitState.INITIALIZING and self._pending is not None:
            logger.debug("Closure references initializing, awaiting in-flight pass")
            return await asyncio.shield(self._pending)

        return await self._run_initialization()

    async def _run_initialization(self) -> ReferenceSnapshot:
        loop = asyncio.get_running_loop()
        future: "asyncio.Future[ReferenceSnapshot]" = loop.create_future()
        self._pending = future
        self._state = InitState.INITIALIZING
        version = self._version
        examples = tuple(self._examples)

        logger.info(f"Computing embeddings for {len(examples)} closure examples")
        try:
            embeddings = await self.embedding_service.embed_batch(list(examples))
        except asyncio.CancelledError:
            self._abandon(future)
            future.cancel()
            raise
        except Exception as e:
            logger.error(f"Failed to initialize closure embeddings: {e}")
            self._abandon(future)
            future.set_exception(e)
            future.exception()
            raise

        if version != self._version:
            # Examples changed while embedding; run a fresh pass for the new list
            logger.debug("Closure examples changed during initialization, re-embedding")
            try:
                snapshot = await self.initialize()
            except Exception as e:
                future.set_exception(e)
                future.exception()
                raise
            future.set_result(snapshot)
            return snapshot

        snapshot = ReferenceSnapshot(examples=examples, embeddings=embeddings)
        self._snapshot = snapshot
        self._pending = None
        self._state = InitState.READY
        future.set_result(snapshot)
        logger.info(f"Closure references ready: {len(examples)} examples")
        return snapshot

    def _abandon(self, future: "asyncio.Future[ReferenceSnapshot]") -> None:
        # Only reset state if no newer pass has replaced this one
        if self._pending is future:
            self._pending = None
            self._state = InitState.UNINITIALIZED
