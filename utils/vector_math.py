"""Vector primitives shared by the indexing and query paths"""
from typing import Sequence

import numpy as np

from core.exceptions import IncompatibleDimensions


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity: dot(a, b) / (||a|| * ||b||).

    Computed in full even for unit vectors, since not every embedder
    guarantees normalization. A zero vector scores 0 against everything.

    Raises:
        IncompatibleDimensions: if the vectors differ in length
    """
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    if vec_a.shape != vec_b.shape:
        raise IncompatibleDimensions(len(vec_a), len(vec_b))

    norm_a = float(np.linalg.norm(vec_a))
    norm_b = float(np.linalg.norm(vec_b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = float(np.dot(vec_a, vec_b)) / (norm_a * norm_b)
    # Clamp float drift just outside [-1, 1]
    return max(-1.0, min(1.0, score))


def l2_normalize(arr: np.ndarray) -> np.ndarray:
    """
    L2 normalize row vectors to unit length (||v|| = 1).

    Args:
        arr: (N, D) array of N vectors with D dimensions

    Returns:
        (N, D) array of unit-normalized vectors (zero rows stay zero)
    """
    norms = np.linalg.norm(arr, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return arr / norms
