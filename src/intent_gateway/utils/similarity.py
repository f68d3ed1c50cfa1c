import logging
from collections.abc import Sequence

import numpy as np

logger = logging.getLogger(__name__)


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Vectors of different length are treated as a mismatch rather than an
    error, and a zero-magnitude vector is similar to nothing.

    Args:
        vec1: First vector.
        vec2: Second vector.

    Returns:
        Similarity in [-1, 1]; 0.0 on length mismatch or zero magnitude.
    """
    if len(vec1) != len(vec2):
        logger.warning("Vector length mismatch in similarity calculation: %d != %d", len(vec1), len(vec2))
        return 0.0

    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)
    magnitude = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0

    return float(np.dot(a, b) / magnitude)
