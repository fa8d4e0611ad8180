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

"""Embedding gateway, similarity math and the closure reference set."""

from autoclose.embeddings.collections import (
    InitState,
    ReferenceExampleSet,
    ReferenceSnapshot,
    load_reference_examples,
)
from autoclose.embeddings.service import EmbeddingService, EmbeddingStats
from autoclose.embeddings.similarity import cosine_similarity, cosine_similarity_matrix

__all__ = [
    "EmbeddingService",
    "EmbeddingStats",
    "InitState",
    "ReferenceExampleSet",
    "ReferenceSnapshot",
    "cosine_similarity",
    "cosine_similarity_matrix",
    "load_reference_examples",
]
