"""
Similarity ranking shared by chunk and archive search.
pgvector returns cosine distance; everything here works on similarity = 1 - distance.
"""

from collections.abc import Iterable, Sequence
from typing import TypeVar

import numpy as np

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]. Zero vectors have similarity 0."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape} vs {vb.shape}")
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def similarity_from_distance(distance: float | None) -> float:
    """Convert pgvector cosine distance (<=>) into similarity."""
    if distance is None:
        return 0.0
    return 1.0 - float(distance)


def rank_by_similarity(
    candidates: Iterable[tuple[T, float]],
    *,
    threshold: float,
    limit: int,
) -> list[tuple[T, float]]:
    """
    Keep candidates with similarity >= threshold, best first, at most `limit`.
    Ties keep their input order.
    """
    if limit <= 0:
        return []
    kept = [(item, sim) for item, sim in candidates if sim >= threshold]
    kept.sort(key=lambda pair: pair[1], reverse=True)
    return kept[:limit]
