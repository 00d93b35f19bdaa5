"""Vector similarity helpers."""
from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of *a* and *b* in ``[-1, 1]``.

    Vectors of different length, and any zero-norm vector, score ``0.0``.
    """

    if len(a) != len(b) or len(a) == 0:
        return 0.0

    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    dot = float(np.dot(left, right))
    norm_a = float(np.dot(left, left))
    norm_b = float(np.dot(right, right))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Rounding can push parallel vectors a hair past the bounds.
    return max(-1.0, min(1.0, score))


__all__ = ["cosine_similarity"]
