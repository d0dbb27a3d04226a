"""
Similarity Oracle

Cosine similarity between embedding vectors, restricted to ``[0, 1]``.

Coverage is a benefit, not a signed correlation, so a negative cosine is
treated as no coverage at all. A vector with zero norm covers nothing and is
covered by nothing; it yields similarity 0 against every vector, itself
included, instead of dividing by zero.
"""

import numpy as np


def cosine_similarity(a, b) -> float:
    """
    Clipped cosine similarity of two equal-length vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        ``dot(a, b) / (|a| |b|)`` clipped to ``[0, 1]``, or 0.0 if either
        vector has zero norm
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Vector shapes differ: {a.shape} vs {b.shape}")
    scale_a = np.max(np.abs(a), initial=0.0)
    scale_b = np.max(np.abs(b), initial=0.0)
    if scale_a == 0.0 or scale_b == 0.0:
        return 0.0
    # rescale first so squaring components cannot overflow or underflow
    a = a / scale_a
    b = b / scale_b
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), 0.0, 1.0))


def row_scales(embeddings: np.ndarray) -> np.ndarray:
    """Largest absolute component of each row, 0 for zero rows."""
    return np.max(np.abs(embeddings), axis=1, keepdims=True, initial=0.0)


def normalize_rows(embeddings: np.ndarray) -> np.ndarray:
    # divide by the largest component before taking norms so that squaring
    # neither overflows to inf nor underflows to 0
    scales = row_scales(embeddings)
    scaled = embeddings / np.where(scales > 0.0, scales, 1.0)
    norms = np.linalg.norm(scaled, axis=1, keepdims=True)
    # zero rows stay zero
    return scaled / np.where(norms > 0.0, norms, 1.0)


def similarity_matrix(embeddings) -> np.ndarray:
    """
    Pairwise clipped cosine similarity for a whole pool.

    Entry ``[i, j]`` equals ``cosine_similarity(embeddings[i], embeddings[j])``.
    The matrix is made exactly symmetric so that the result does not depend
    on which side of a pair is asked for.

    Args:
        embeddings: Array-like of shape (n, D)

    Returns:
        float64 array of shape (n, n) with values in ``[0, 1]``
    """
    embeddings = np.asarray(embeddings, dtype=np.float64)
    x = normalize_rows(embeddings)
    sims = x @ x.T
    sims = np.clip(sims, 0.0, 1.0)
    sims = np.maximum(sims, sims.T)
    # self-similarity is exactly 1 for non-zero vectors
    nonzero = row_scales(embeddings)[:, 0] > 0.0
    np.fill_diagonal(sims, np.where(nonzero, 1.0, 0.0))
    return sims
