from __future__ import annotations

import math

import numpy as np
import pytest

from ragqa.similarity import cosine_similarity


def test_identical_and_opposite_vectors() -> None:
    vector = [0.3, -1.2, 4.0]

    assert cosine_similarity(vector, vector) == pytest.approx(1.0)
    assert cosine_similarity(vector, [-value for value in vector]) == pytest.approx(-1.0)


def test_uses_product_of_square_rooted_norms() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 1.0]) == pytest.approx(1 / math.sqrt(2))
    assert cosine_similarity([3.0, 0.0], [6.0, 0.0]) == pytest.approx(1.0)


@pytest.mark.parametrize(
    ("left", "right"),
    [
        ([1.0, 0.0], [1.0, 0.0, 0.0]),
        ([0.0, 0.0], [1.0, 1.0]),
        ([], []),
    ],
)
def test_degenerate_inputs_score_zero(left: list[float], right: list[float]) -> None:
    assert cosine_similarity(left, right) == 0.0


def test_scores_stay_within_bounds() -> None:
    rng = np.random.default_rng(7)
    for _ in range(200):
        left, right = rng.normal(size=(2, 16)).tolist()
        assert -1.0 <= cosine_similarity(left, right) <= 1.0
