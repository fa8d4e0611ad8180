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

"""Cosine similarity helpers for embedding vectors."""

from typing import Sequence, Union

import numpy as np

from autoclose.core.errors import DimensionMismatchError

VectorLike = Union[np.ndarray, Sequence[float]]


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Calculate cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity score (-1 to 1; 0.0 if either vector has zero norm)

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatchError(vec_a.size, vec_b.size)

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    # Normalize first so tiny norms cannot underflow the denominator
    score = float(np.dot(vec_a / norm_a, vec_b / norm_b))
    return max(-1.0, min(1.0, score))


def cosine_similarity_matrix(query: VectorLike, corpus: np.ndarray) -> np.ndarray:
    """Calculate cosine similarity between query and all corpus vectors.

    Rows of ``corpus`` with zero norm score 0.0, as does everything when the
    query itself has zero norm.

    Args:
        query: Query vector (shape: [dimension])
        corpus: Corpus matrix (shape: [n_items, dimension])

    Returns:
        Similarity scores (shape: [n_items])
    """
    query_vec = np.asarray(query, dtype=np.float64)
    corpus_mat = np.asarray(corpus, dtype=np.float64)

    if corpus_mat.size == 0:
        return np.array([], dtype=np.float64)
    if corpus_mat.ndim != 2 or corpus_mat.shape[1] != query_vec.size:
        raise DimensionMismatchError(query_vec.size, corpus_mat.shape[-1])

    query_norm = np.linalg.norm(query_vec)
    if query_norm == 0:
        return np.zeros(corpus_mat.shape[0], dtype=np.float64)

    corpus_norms = np.linalg.norm(corpus_mat, axis=1)
    safe_norms = np.where(corpus_norms > 0, corpus_norms, 1.0)
    unit_rows = corpus_mat / safe_norms[:, np.newaxis]
    similarities = unit_rows @ (query_vec / query_norm)
    return np.clip(similarities, -1.0, 1.0)
