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

"""Shared embedding service for the auto-close engine.

This module provides a single embedding gateway that:
- Wraps the remote embedding capability (direct or proxied transport)
- Memoizes vectors by exact text for the lifetime of the process
- Coalesces concurrent requests for the same uncached text into one call
- Optionally bounds the cache with LRU eviction for long-lived processes
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from autoclose.core.errors import EmbeddingUnavailableError, ErrorCategory
from autoclose.providers.protocols import EmbeddingProvider

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingStats:
    """Counters for cache effectiveness."""

    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    remote_calls: int = 0
    failures: int = 0


class EmbeddingService:
    """Embedding gateway shared by every detector in the process.

    Usage:
        service = EmbeddingService(provider)
        vector = await service.embed_text("Have a great day")
        vectors = await service.embed_batch(["Take care", "Glad I could help"])

        # Or the process-wide instance built from settings
        service = EmbeddingService.get_instance()
    """

    _instance: Optional["EmbeddingService"] = None
    _lock = threading.Lock()

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache_size: Optional[int] = None,
    ):
        """Initialize embedding service.

        Args:
            provider: Remote embedding capability
            cache_size: Maximum cached vectors (LRU). None keeps every vector,
                which is fine for a single demo session.
        """
        self.provider = provider
        self.cache_size = cache_size
        self._cache: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._in_flight: Dict[str, "asyncio.Future[np.ndarray]"] = {}
        self._dimension: Optional[int] = None
        self.stats = EmbeddingStats()

    @classmethod
    def get_instance(cls, provider: Optional[EmbeddingProvider] = None) -> "EmbeddingService":
        """Get or create the process-wide embedding service.

        Args:
            provider: Provider to use (only used on first call). Built from
                settings when omitted.

        Returns:
            The singleton EmbeddingService instance
        """
        if cls._instance is None:
            with cls._lock:
                # Double-checked locking
                if cls._instance is None:
                    from autoclose.config.settings import get_settings
                    from autoclose.providers.openai_http import create_embedding_provider

                    settings = get_settings()
                    cls._instance = cls(
                        provider or create_embedding_provider(settings),
                        cache_size=settings.embedding_cache_size,
                    )
                    logger.info(
                        f"Created EmbeddingService singleton with model: "
                        f"{cls._instance.model_name}"
                    )
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (mainly for testing)."""
        with cls._lock:
            if cls._instance is not None:
                cls._instance.clear_cache()
                cls._instance = None
                logger.info("Reset EmbeddingService singleton")

    @property
    def model_name(self) -> str:
        return getattr(self.provider, "model_name", "unknown")

    @property
    def dimension(self) -> Optional[int]:
        """Embedding dimension, known after the first successful call."""
        return self._dimension

    @property
    def cached_count(self) -> int:
        return len(self._cache)

    def is_cached(self, text: str) -> bool:
        return text in self._cache

    def clear_cache(self) -> None:
        """Drop every cached vector."""
        self._cache.clear()
        logger.debug("[EmbeddingService] cache cleared")

    def _remember(self, text: str, vector: np.ndarray) -> None:
        self._cache[text] = vector
        self._cache.move_to_end(text)
        if self.cache_size is not None:
            while len(self._cache) > self.cache_size:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug(f"[EmbeddingService] evicted: {evicted[:40]!r}")

    def _check_dimension(self, vector: np.ndarray) -> None:
        if vector.ndim != 1 or vector.size == 0:
            raise EmbeddingUnavailableError(
                "Embedding provider returned an empty or non-flat vector",
                category=ErrorCategory.PROVIDER_INVALID_RESPONSE,
                model=self.model_name,
            )
        if self._dimension is None:
            self._dimension = int(vector.size)
        elif vector.size != self._dimension:
            raise EmbeddingUnavailableError(
                f"Embedding dimension changed from {self._dimension} to {vector.size}",
                category=ErrorCategory.PROVIDER_INVALID_RESPONSE,
                model=self.model_name,
            )

    async def _fetch(self, text: str) -> np.ndarray:
        self.stats.remote_calls += 1
        start_time = time.perf_counter()
        try:
            raw = await self.provider.embed(text)
        except EmbeddingUnavailableError:
            raise
        except Exception as e:
            # Adapters should already map their errors; anything else is
            # still an unavailable embedding from the caller's point of view.
            raise EmbeddingUnavailableError(
                f"Embedding provider failed: {e}",
                category=ErrorCategory.UNKNOWN,
                model=self.model_name,
                cause=e,
            ) from e

        vector = np.asarray(raw, dtype=np.float32)
        self._check_dimension(vector)

        elapsed = time.perf_counter() - start_time
        logger.debug(
            f"[EmbeddingService] embed_text: "
            f"chars={len(text)}, "
            f"dimension={vector.size}, "
            f"time={elapsed*1000:.2f}ms"
        )
        return vector

    async def embed_text(self, text: str) -> np.ndarray:
        """Get the embedding for a single text.

        The cache key is the exact string (no normalization).

        Args:
            text: Text to embed

        Returns:
            Embedding vector as numpy array (float32)

        Raises:
            EmbeddingUnavailableError: If the remote call fails
        """
        cached = self._cache.get(text)
        if cached is not None:
            self.stats.hits += 1
            self._cache.move_to_end(text)
            return cached

        pending = self._in_flight.get(text)
        if pending is not None:
            self.stats.coalesced += 1
            return await asyncio.shield(pending)

        self.stats.misses += 1
        future: "asyncio.Future[np.ndarray]" = asyncio.get_running_loop().create_future()
        self._in_flight[text] = future
        try:
            vector = await self._fetch(text)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            self.stats.failures += 1
            future.set_exception(e)
            # Mark retrieved so a future with no waiters does not warn on GC
            future.exception()
            raise
        else:
            self._remember(text, vector)
            if not future.done():
                future.set_result(vector)
            return vector
        finally:
            self._in_flight.pop(text, None)

    async def embed_batch(self, texts: List[str]) -> np.ndarray:
        """Embed several texts concurrently, preserving order.

        All-or-nothing: if any text fails, the error propagates (the vectors
        that did succeed stay cached).

        Args:
            texts: List of texts to embed

        Returns:
            2D numpy array of embeddings (shape: [len(texts), dimension])
        """
        if not texts:
            return np.empty((0, self._dimension or 0), dtype=np.float32)
        vectors = await asyncio.gather(*(self.embed_text(t) for t in texts))
        return np.vstack(vectors)
