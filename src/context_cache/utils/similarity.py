import numpy as np


def cosine_similarity(vector_a: list[float] | np.ndarray, vector_b: list[float] | np.ndarray) -> float:
    """Cosine similarity of two vectors.

    Mismatched lengths, empty vectors and zero-norm vectors all give 0.0,
    so a degenerate embedding can never produce a cache hit.

    Args:
        vector_a: First vector
        vector_b: Second vector

    Returns:
        Similarity in [-1, 1] (1 = same direction)
    """
    a = np.asarray(vector_a, dtype=np.float64)
    b = np.asarray(vector_b, dtype=np.float64)

    if a.ndim != 1 or a.shape != b.shape or a.size == 0:
        return 0.0

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))
