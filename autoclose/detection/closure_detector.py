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

"""Closure statement detection using semantic embeddings.

An agent message is a closure statement when it signals that the issue is
resolved and invites further requests ("Is there anything else I can help
you with?"). Detection compares the message embedding with a curated set of
reference closures and accepts when the best cosine similarity reaches the
threshold.

When the embedding capability is down, detection degrades to keyword
containment so the console keeps working with lower recall.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

import numpy as np

from autoclose.core.errors import DimensionMismatchError, EmbeddingUnavailableError
from autoclose.embeddings.collections import ReferenceExampleSet
from autoclose.embeddings.service import EmbeddingService
from autoclose.embeddings.similarity import cosine_similarity_matrix

logger = logging.getLogger(__name__)


# Used only when embeddings are unavailable
FALLBACK_KEYWORDS = (
    "anything else",
    "help you with",
    "great day",
    "take care",
    "glad i could",
    "happy to help",
    "hope i was able",
    "will that be all",
)

TOP_K = 3


@dataclass(frozen=True)
class SimilarityMatch:
    """One reference example and its similarity to the message."""

    example: str
    score: float


@dataclass
class DetectionResult:
    """Full diagnostics of one semantic detection."""

    message: str
    is_closure: bool
    max_similarity: float
    best_match: str
    top3: List[SimilarityMatch]
    threshold: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "isClosure": self.is_closure,
            "maxSimilarity": self.max_similarity,
            "mostSimilarExample": self.best_match,
            "threshold": self.threshold,
            "top3Matches": [{"example": m.example, "score": m.score} for m in self.top3],
        }


@dataclass
class DetectionOutcome:
    """Return value of ``detect(..., include_details=True)``.

    ``details`` is None when the message was rejected as too short or the
    keyword fallback produced the answer.
    """

    is_closure: bool
    details: Optional[DetectionResult] = None
    fallback_used: bool = False

    def __bool__(self) -> bool:
        return self.is_closure


def keyword_fallback(message: str, keywords: Sequence[str] = FALLBACK_KEYWORDS) -> bool:
    """Case-insensitive keyword containment. Never raises."""
    if not isinstance(message, str):
        return False
    lowered = message.lower()
    return any(keyword in lowered for keyword in keywords)


def _rank_matches(examples: Sequence[str], scores: np.ndarray, top_k: int) -> List[SimilarityMatch]:
    # Stable sort on negated scores keeps list order for ties
    order = np.argsort(-scores, kind="stable")[:top_k]
    return [SimilarityMatch(example=examples[i], score=float(scores[i])) for i in order]


class ClosureDetector:
    """Semantic closure detector.

    Usage:
        detector = ClosureDetector(EmbeddingService.get_instance(), threshold=0.55)

        if await detector.detect("Is there anything else I can help you with?"):
            ...

        outcome = await detector.detect("Have a great day!", include_details=True)
        print(outcome.details.best_match, outcome.details.max_similarity)
    """

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService] = None,
        examples: Optional[Iterable[str]] = None,
        threshold: Optional[float] = None,
        min_length: Optional[int] = None,
        fallback_keywords: Sequence[str] = FALLBACK_KEYWORDS,
        references: Optional[ReferenceExampleSet] = None,
    ):
        """Initialize closure detector.

        Args:
            embedding_service: Shared embedding gateway (singleton if omitted)
            examples: Reference closure sentences (packaged list if omitted)
            threshold: Minimum best similarity to accept (settings default if omitted)
            min_length: Minimum trimmed message length worth embedding
                (settings default if omitted)
            fallback_keywords: Keywords for the degraded detection path
            references: Existing reference set to share (overrides ``examples``)
        """
        if references is not None:
            self.references = references
        else:
            service = embedding_service or EmbeddingService.get_instance()
            self.references = ReferenceExampleSet(service, examples)

        if threshold is None or min_length is None:
            from autoclose.config.settings import get_settings

            settings = get_settings()
            if threshold is None:
                threshold = settings.similarity_threshold
            if min_length is None:
                min_length = settings.min_message_length
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be between 0.0 and 1.0, got {threshold}")

        self._threshold = float(threshold)
        self.min_length = min_length
        self.fallback_keywords = tuple(k.lower() for k in fallback_keywords)

    @property
    def embedding_service(self) -> EmbeddingService:
        return self.references.embedding_service

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def examples(self) -> List[str]:
        return self.references.examples

    def set_threshold(self, value: float) -> bool:
        """Set the similarity threshold.

        Values outside [0, 1] are ignored, so sweeps can pass raw grids.

        Returns:
            True if the threshold changed
        """
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric threshold: {value!r}")
            return False
        if not 0.0 <= numeric <= 1.0:
            logger.debug(f"Ignoring out-of-range threshold: {numeric}")
            return False
        self._threshold = numeric
        return True

    @contextmanager
    def threshold_override(self, value: float) -> Iterator["ClosureDetector"]:
        """Temporarily use another threshold; the previous one is restored on exit."""
        previous = self._threshold
        self.set_threshold(value)
        try:
            yield self
        finally:
            self._threshold = previous

    def with_threshold(self, value: float) -> "ClosureDetector":
        """Independent detector with its own threshold, sharing the references."""
        return ClosureDetector(
            threshold=value,
            min_length=self.min_length,
            fallback_keywords=self.fallback_keywords,
            references=self.references,
        )

    def add_reference_example(self, text: str) -> bool:
        """Add a closure example; the next detection re-embeds all references."""
        return self.references.add(text)

    async def initialize_references(self) -> None:
        """Embed all reference examples once (idempotent, all-or-nothing)."""
        await self.references.initialize()

    def _reject(self, include_details: bool) -> Union[bool, DetectionOutcome]:
        return DetectionOutcome(is_closure=False) if include_details else False

    async def detect(
        self,
        message: Any,
        include_details: bool = False,
    ) -> Union[bool, DetectionOutcome]:
        """Decide whether an agent message is a closure statement.

        Args:
            message: Agent message text
            include_details: Return a DetectionOutcome with similarity
                diagnostics instead of a bare bool

        Returns:
            bool, or DetectionOutcome when ``include_details`` is True
        """
        if not isinstance(message, str):
            return self._reject(include_details)

        normalized = message.strip()
        if len(normalized) < self.min_length:
            return self._reject(include_details)

        try:
            snapshot = await self.references.initialize()
            query = await self.embedding_service.embed_text(normalized)
            scores = cosine_similarity_matrix(query, snapshot.embeddings)
        except (EmbeddingUnavailableError, DimensionMismatchError) as e:
            is_closure = keyword_fallback(normalized, self.fallback_keywords)
            logger.warning(
                f"Embedding unavailable ({e.category.value}), keyword fallback "
                f"for {normalized[:60]!r}: {is_closure}"
            )
            if include_details:
                return DetectionOutcome(is_closure=is_closure, fallback_used=True)
            return is_closure

        if scores.size == 0:
            max_similarity = 0.0
            best_match = ""
        else:
            best_index = int(np.argmax(scores))  # first occurrence wins ties
            max_similarity = float(scores[best_index])
            best_match = snapshot.examples[best_index]

        threshold = self._threshold
        is_closure = bool(scores.size) and max_similarity >= threshold

        logger.debug(
            f"Closure detection: similarity={max_similarity:.3f}, "
            f"threshold={threshold:.2f}, closure={is_closure}, match={best_match[:40]!r}"
        )

        if not include_details:
            return is_closure

        return DetectionOutcome(
            is_closure=is_closure,
            details=DetectionResult(
                message=normalized,
                is_closure=is_closure,
                max_similarity=max_similarity,
                best_match=best_match,
                top3=_rank_matches(snapshot.examples, scores, TOP_K),
                threshold=threshold,
            ),
        )
