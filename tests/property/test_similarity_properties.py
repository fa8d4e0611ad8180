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

"""Property-based tests for cosine similarity.

Uses Hypothesis to check:
1. Symmetry
2. Bounds
3. Self-similarity and scale invariance
4. Agreement between the pairwise and matrix forms
"""

import math

import numpy as np
import pytest
from hypothesis import Phase, assume, given, settings, strategies as st

from autoclose.embeddings.similarity import cosine_similarity, cosine_similarity_matrix

component = st.floats(min_value=-100.0, max_value=100.0, allow_nan=False, allow_infinity=False)


@st.composite
def vector_pair(draw, min_size=1, max_size=16):
    size = draw(st.integers(min_value=min_size, max_value=max_size))
    a = draw(st.lists(component, min_size=size, max_size=size))
    b = draw(st.lists(component, min_size=size, max_size=size))
    return a, b


def norm(vector):
    return math.sqrt(sum(x * x for x in vector))


class TestCosineProperties:
    @given(pair=vector_pair())
    @settings(max_examples=100, phases=[Phase.generate])
    def test_symmetric(self, pair):
        a, b = pair
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    @given(pair=vector_pair())
    @settings(max_examples=100, phases=[Phase.generate])
    def test_bounded(self, pair):
        a, b = pair
        score = cosine_similarity(a, b)

        assert not math.isnan(score)
        assert -1.0 - 1e-9 <= score <= 1.0 + 1e-9

    @given(pair=vector_pair())
    @settings(max_examples=100, phases=[Phase.generate])
    def test_self_similarity_is_one(self, pair):
        a, _ = pair
        assume(norm(a) > 1e-3)
        assert cosine_similarity(a, a) == pytest.approx(1.0)

    @given(pair=vector_pair(), scale=st.floats(min_value=0.01, max_value=100.0))
    @settings(max_examples=100, phases=[Phase.generate])
    def test_positive_scale_invariant(self, pair, scale):
        a, b = pair
        assume(norm(a) > 1e-3 and norm(b) > 1e-3)
        scaled = [x * scale for x in a]
        assert cosine_similarity(scaled, b) == pytest.approx(cosine_similarity(a, b), abs=1e-9)

    @given(pair=vector_pair())
    @settings(max_examples=50, phases=[Phase.generate])
    def test_zero_vector_scores_zero(self, pair):
        a, _ = pair
        assert cosine_similarity([0.0] * len(a), a) == 0.0


class TestMatrixProperties:
    @given(
        size=st.integers(min_value=1, max_value=8),
        rows=st.integers(min_value=1, max_value=6),
        data=st.data(),
    )
    @settings(max_examples=50, phases=[Phase.generate])
    def test_matches_pairwise(self, size, rows, data):
        query = data.draw(st.lists(component, min_size=size, max_size=size))
        corpus = [data.draw(st.lists(component, min_size=size, max_size=size)) for _ in range(rows)]

        scores = cosine_similarity_matrix(query, np.array(corpus))

        assert scores.shape == (rows,)
        assert not np.isnan(scores).any()
        for i, row in enumerate(corpus):
            assert scores[i] == pytest.approx(cosine_similarity(query, row), abs=1e-9)
