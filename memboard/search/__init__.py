"""Embeddings and similarity ranking."""
from memboard.search.embeddings import Embedder, GeminiEmbedder
from memboard.search.ranking import cosine_similarity, rank_by_similarity, similarity_from_distance

__all__ = [
    "Embedder",
    "GeminiEmbedder",
    "cosine_similarity",
    "rank_by_similarity",
    "similarity_from_distance",
]
