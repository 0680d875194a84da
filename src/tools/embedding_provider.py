"""Embedding provider interface and a model-free default implementation"""

from typing import List, Protocol

import numpy as np
from sklearn.feature_extraction.text import HashingVectorizer

from src.utils.errors import EmbeddingUnavailable

DEFAULT_DIMENSION = 256


class EmbeddingProvider(Protocol):
    """Pure, synchronous text -> fixed-length vector function"""

    def embed(self, text: str) -> List[float]:
        ...


class HashingEmbeddingProvider:
    """
    Character n-gram hashing embedder.

    Deterministic and stateless, so it needs no model download. Texts that
    share spelling fragments ("quickcash" / "quik-cash") land close together
    under cosine similarity, which is what the merchant search relies on.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION):
        self.dimension = dimension
        self._vectorizer = HashingVectorizer(
            n_features=dimension,
            analyzer="char_wb",
            ngram_range=(3, 4),
            alternate_sign=False,
            norm="l2",
            lowercase=True,
        )

    def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingUnavailable("Cannot embed empty text")
        matrix = self._vectorizer.transform([text])
        return np.asarray(matrix.toarray()[0], dtype=float).tolist()
