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

"""Protocols for the two remote capabilities the engine consumes.

The detector and classifier depend on these protocols, not on a concrete
HTTP client, so tests and alternative backends can plug in freely.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Text to fixed-length vector.

    Implementations raise ``EmbeddingUnavailableError`` on any failure, with a
    category telling transport problems apart from malformed responses.
    """

    model_name: str

    async def embed(self, text: str) -> Sequence[float]:
        """Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector (same dimension on every call)
        """
        ...


@runtime_checkable
class CompletionProvider(Protocol):
    """Structured prompt to a short text answer.

    Implementations raise ``ClassificationUnavailableError`` on any failure.
    """

    model_name: str

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Run a single chat completion.

        Args:
            system_prompt: Instructions for the model
            user_prompt: The user turn
            temperature: Sampling temperature
            max_tokens: Output cap

        Returns:
            Raw text content of the first choice
        """
        ...


__all__ = ["EmbeddingProvider", "CompletionProvider"]
