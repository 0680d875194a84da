"""Network Agent - fraud ring detection and write-back"""

import asyncio
from typing import Optional

from src.constants import AgentName
from src.models.fraud_ring import FraudRing
from src.models.scored_transaction import AgentResult
from src.models.scoring_config import NetworkConfig
from src.models.transaction import Transaction
from src.orchestrator.retry_handler import retry_with_exponential_backoff
from src.orchestrator.ring_store import RingStore
from src.tools.historical_store import HistoricalStore
from src.tools.ring_detector import RingDetector
from src.utils.errors import FraudScoringError, RingStoreError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class NetworkAgent:
    """Runs the ring detector and persists any ring it finds"""

    name = AgentName.NETWORK.value

    def __init__(
        self,
        store: HistoricalStore,
        config: Optional[NetworkConfig] = None,
        ring_store: Optional[RingStore] = None,
    ):
        self.store = store
        self.config = config or NetworkConfig()
        self.ring_store = ring_store
        self.detector = RingDetector(store, self.config)

    async def analyze(self, transaction: Transaction) -> AgentResult:
        profile = await self.store.get_user_profile(transaction.user_id)
        home = profile.home_location if profile is not None else None
        assessment = await self.detector.detect(transaction, home_location=home)

        ring = assessment.ring
        if ring is not None:
            ring = await self._persist(ring)

        return AgentResult(
            agent=self.name,
            score=assessment.score,
            evidence=assessment.evidence,
            details=dict(assessment.details),
            ring=ring,
            ring_active=ring is not None and ring.is_active,
        )

    async def _persist(self, ring: FraudRing) -> FraudRing:
        """Upsert the ring; a failed write is logged and the detection still reported"""
        if self.ring_store is None:
            return ring

        try:
            return await asyncio.to_thread(
                retry_with_exponential_backoff,
                self.ring_store.upsert_ring,
                ring,
                max_retries=self.config.write_retries,
                retry_on=(RingStoreError,),
            )
        except FraudScoringError as e:
            logger.error(f"❌ Fraud ring write-back failed: {e}", ring_id=ring.ring_id)
            return ring
