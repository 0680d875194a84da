"""Hybrid lexical + semantic search over merchant documents.

Two independent reads are issued concurrently:

1. Lexical pass: full-text relevance of the query against merchant
   descriptions on file -> text_score in [0, 1]
2. Semantic pass: embed the query, nearest-neighbour search over merchant
   embeddings -> vector_score in [0, 1]

and fused as ``text_weight * text_score + vector_weight * vector_score``
(0.3 / 0.7 by default). Each pass has its own timeout; a pass that times out
or fails contributes 0 to its term instead of failing the search. Only a
store outage propagates.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.constants import DEFAULT_TEXT_WEIGHT, DEFAULT_VECTOR_WEIGHT
from src.models.profiles import MerchantProfile
from src.tools.embedding_provider import EmbeddingProvider
from src.tools.geo import clip01
from src.tools.historical_store import HistoricalStore, SearchHits
from src.utils.errors import EmbeddingUnavailable, StoreUnavailable
from src.utils.logging import get_logger
from src.utils.metrics import hybrid_search_pass_failures

logger = get_logger(__name__)


def fuse_scores(
    text_score: float,
    vector_score: float,
    text_weight: float = DEFAULT_TEXT_WEIGHT,
    vector_weight: float = DEFAULT_VECTOR_WEIGHT,
) -> float:
    """Weighted fusion of lexical and semantic relevance"""
    return clip01(text_weight * clip01(text_score) + vector_weight * clip01(vector_score))


@dataclass
class HybridSearchResult:
    """Outcome of one hybrid search"""

    text_score: float
    vector_score: float
    score: float
    text_match: Optional[MerchantProfile] = None
    vector_match: Optional[MerchantProfile] = None
    failed_passes: Dict[str, str] = field(default_factory=dict)

    @property
    def embedding_failed(self) -> bool:
        return self.failed_passes.get('semantic', '').startswith('embedding')


class HybridSearchEngine:
    """Fuses a lexical pass and a semantic pass into one relevance score"""

    def __init__(
        self,
        store: HistoricalStore,
        embedding_provider: EmbeddingProvider,
        text_weight: float = DEFAULT_TEXT_WEIGHT,
        vector_weight: float = DEFAULT_VECTOR_WEIGHT,
        pass_timeout_ms: float = 60.0,
        limit: int = 10,
        min_vector_similarity: float = 0.0,
    ):
        self.store = store
        self.embedding_provider = embedding_provider
        self.text_weight = text_weight
        self.vector_weight = vector_weight
        self.pass_timeout = pass_timeout_ms / 1000.0
        self.limit = limit
        self.min_vector_similarity = min_vector_similarity

    async def search(
        self,
        text: str,
        filters: Optional[Dict[str, Any]] = None,
        extra_terms: Optional[List[str]] = None,
    ) -> HybridSearchResult:
        """
        Run both passes concurrently and fuse them.

        Args:
            text: Query text (also the text that gets embedded)
            filters: Store filters applied to both passes
            extra_terms: Terms appended to the lexical query only

        Returns:
            HybridSearchResult with both component scores and the fused score

        Raises:
            StoreUnavailable: If the store cannot be reached
        """
        lexical_query = " ".join([text] + list(extra_terms or []))

        lexical, semantic = await asyncio.gather(
            self._bounded('lexical', self._lexical_pass(lexical_query, filters)),
            self._bounded('semantic', self._semantic_pass(text, filters)),
        )

        failed_passes = {}
        text_score, text_match = 0.0, None
        if isinstance(lexical, str):
            failed_passes['lexical'] = lexical
        elif lexical:
            text_match, text_score = lexical[0]

        vector_score, vector_match = 0.0, None
        if isinstance(semantic, str):
            failed_passes['semantic'] = semantic
        elif semantic:
            vector_match, vector_score = semantic[0]
            if vector_score < self.min_vector_similarity:
                # Nearest neighbour is outside the distance bound
                vector_score, vector_match = 0.0, None

        result = HybridSearchResult(
            text_score=clip01(text_score),
            vector_score=clip01(vector_score),
            score=fuse_scores(text_score, vector_score, self.text_weight, self.vector_weight),
            text_match=text_match,
            vector_match=vector_match,
            failed_passes=failed_passes,
        )
        logger.debug(
            "Hybrid search complete",
            text_score=result.text_score,
            vector_score=result.vector_score,
            score=result.score,
            failed_passes=failed_passes
        )
        return result

    async def _bounded(self, pass_name: str, coro):
        """Await one pass under its timeout; failures come back as a reason string"""
        try:
            return await asyncio.wait_for(coro, timeout=self.pass_timeout)
        except StoreUnavailable:
            raise
        except asyncio.TimeoutError:
            reason = f"timed out after {self.pass_timeout * 1000:.0f}ms"
        except EmbeddingUnavailable as e:
            reason = f"embedding unavailable: {e}"
        except Exception as e:
            reason = f"failed: {e}"

        hybrid_search_pass_failures.labels(search_pass=pass_name).inc()
        logger.warning(f"{pass_name.capitalize()} search pass contributes 0: {reason}")
        return reason

    async def _lexical_pass(self, query: str, filters: Optional[Dict[str, Any]]) -> SearchHits:
        return await self.store.lexical_search(query, filters=filters, limit=self.limit)

    async def _semantic_pass(self, text: str, filters: Optional[Dict[str, Any]]) -> SearchHits:
        try:
            vector = await asyncio.to_thread(self.embedding_provider.embed, text)
        except EmbeddingUnavailable:
            raise
        except Exception as e:
            raise EmbeddingUnavailable(str(e)) from e
        return await self.store.vector_search(vector, k=self.limit, filters=filters)
