"""Merchant Agent - similarity to known-fraud merchant descriptions"""

import asyncio
from typing import Optional

from src.constants import AgentName
from src.models.scored_transaction import AgentResult
from src.models.scoring_config import MerchantConfig
from src.models.transaction import Transaction
from src.tools.embedding_provider import EmbeddingProvider
from src.tools.geo import clip01
from src.tools.historical_store import HistoricalStore
from src.tools.hybrid_search import HybridSearchEngine


class MerchantAgent:
    """
    Merchant reputation via hybrid search.

    The transaction's description text is searched against merchant documents
    whose fraud rate marks them as known fraud. The sub-score is the larger of
    the fused search relevance and the merchant's own fraud rate.
    """

    name = AgentName.MERCHANT.value

    def __init__(
        self,
        store: HistoricalStore,
        embedding_provider: EmbeddingProvider,
        config: Optional[MerchantConfig] = None,
    ):
        self.store = store
        self.config = config or MerchantConfig()
        self.search_engine = HybridSearchEngine(
            store,
            embedding_provider,
            text_weight=self.config.text_weight,
            vector_weight=self.config.vector_weight,
            pass_timeout_ms=self.config.pass_timeout_ms,
            limit=self.config.search_limit,
            min_vector_similarity=self.config.min_vector_similarity,
        )

    async def analyze(self, transaction: Transaction) -> AgentResult:
        cfg = self.config
        search, profile = await asyncio.gather(
            self.search_engine.search(
                transaction.description_text(),
                filters={'min_fraud_rate': cfg.known_fraud_rate},
                extra_terms=cfg.fraud_terms,
            ),
            self.store.get_merchant_profile(transaction.merchant),
        )

        fraud_rate = profile.fraud_rate if profile is not None else 0.0
        score = clip01(max(search.score, fraud_rate))

        reasons = []
        if profile is None:
            reasons.append(f"Merchant '{transaction.merchant}' has no history")
        elif fraud_rate > 0:
            reasons.append(
                f"Merchant fraud rate {fraud_rate:.0%} ({profile.fraud_count}/{profile.total_count})"
            )
        match = search.vector_match or search.text_match
        if search.score > 0 and match is not None:
            reasons.append(
                f"Resembles known-fraud merchant '{match.name}' "
                f"(text {search.text_score:.2f}, vector {search.vector_score:.2f}, fused {search.score:.3f})"
            )
        for pass_name, reason in sorted(search.failed_passes.items()):
            reasons.append(f"{pass_name} search {reason}")

        return AgentResult(
            agent=self.name,
            score=score,
            evidence="; ".join(reasons) if reasons else "No merchant risk indicators",
            details={
                'text_score': round(search.text_score, 4),
                'vector_score': round(search.vector_score, 4),
                'search_score': round(search.score, 4),
                'merchant_fraud_rate': round(fraud_rate, 4),
                'failed_passes': dict(search.failed_passes),
            }
        )
