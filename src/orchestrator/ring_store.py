"""Redis-backed fraud ring persistence with an in-memory fallback.

Rings are upserted idempotently, keyed by ring_id. This is the only write
the scoring core performs.
"""

import os
import threading
from typing import Dict, List, Optional

from src.constants import RingStatus
from src.models.fraud_ring import FraudRing, merge_rings
from src.utils.errors import RingStoreError
from src.utils.logging import get_logger
from src.utils.metrics import fraud_rings_upserted

logger = get_logger(__name__)

try:
    import redis
    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False

RING_KEY_PREFIX = "fraud_ring:"
RING_INDEX_KEY = "fraud_rings"


class RingStore:
    """Fraud ring repository ("memory" or "redis" backend)"""

    def __init__(self, backend: Optional[str] = None, redis_url: Optional[str] = None):
        requested = backend or os.getenv("RING_STORE_BACKEND", "memory")
        self._memory: Dict[str, FraudRing] = {}
        self._lock = threading.Lock()
        self.redis_client = None

        if requested == "redis" and REDIS_AVAILABLE:
            url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
            try:
                client = redis.Redis.from_url(
                    url,
                    decode_responses=True,
                    socket_keepalive=True,
                    socket_connect_timeout=1
                )
                client.ping()
                self.redis_client = client
                logger.info("Connected to Redis ring store", url=url)
            except redis.RedisError as e:
                logger.warning(f"Redis connection failed, falling back to in-memory: {e}")
        elif requested == "redis":
            logger.warning("Redis backend requested but redis module not installed, using in-memory")

        self.backend = "redis" if self.redis_client is not None else "memory"
        logger.info(f"Using {self.backend} ring store backend")

    def upsert_ring(self, ring: FraudRing) -> FraudRing:
        """
        Create the ring or fold the detection into the stored record.

        Args:
            ring: Freshly detected ring

        Returns:
            The stored ring after the merge

        Raises:
            RingStoreError: If the write fails
        """
        if self.redis_client is not None:
            existing, merged = self._upsert_redis(ring)
        else:
            with self._lock:
                existing = self._memory.get(ring.ring_id)
                merged = merge_rings(existing, ring)
                self._memory[ring.ring_id] = merged

        outcome = "created" if existing is None else "updated"
        fraud_rings_upserted.labels(outcome=outcome).inc()
        logger.info(
            f"Fraud ring {outcome}",
            ring_id=merged.ring_id,
            victim_count=merged.victim_count,
            total_amount=str(merged.total_amount),
            status=merged.status.value
        )
        return merged

    def _upsert_redis(self, ring: FraudRing):
        key = RING_KEY_PREFIX + ring.ring_id
        try:
            with self.redis_client.pipeline() as pipe:
                # Optimistic lock: a concurrent write to the key aborts execute()
                pipe.watch(key)
                raw = pipe.get(key)
                existing = FraudRing.model_validate_json(raw) if raw else None
                merged = merge_rings(existing, ring)
                pipe.multi()
                pipe.set(key, merged.model_dump_json())
                pipe.sadd(RING_INDEX_KEY, ring.ring_id)
                pipe.execute()
            return existing, merged
        except redis.RedisError as e:
            raise RingStoreError(f"Failed to upsert ring {ring.ring_id}: {e}") from e

    def get_ring(self, ring_id: str) -> Optional[FraudRing]:
        if self.redis_client is None:
            return self._memory.get(ring_id)

        try:
            raw = self.redis_client.get(RING_KEY_PREFIX + ring_id)
        except redis.RedisError as e:
            raise RingStoreError(f"Failed to read ring {ring_id}: {e}") from e
        return FraudRing.model_validate_json(raw) if raw else None

    def list_rings(self, status: Optional[RingStatus] = None) -> List[FraudRing]:
        if self.redis_client is None:
            rings = list(self._memory.values())
        else:
            try:
                ring_ids = self.redis_client.smembers(RING_INDEX_KEY)
            except redis.RedisError as e:
                raise RingStoreError(f"Failed to list rings: {e}") from e
            rings = [ring for ring in (self.get_ring(ring_id) for ring_id in ring_ids) if ring]

        if status is not None:
            rings = [ring for ring in rings if ring.status == status]
        return sorted(rings, key=lambda ring: ring.ring_id)

    def resolve_ring(self, ring_id: str) -> FraudRing:
        """Close a ring after investigation; the record is kept"""
        ring = self.get_ring(ring_id)
        if ring is None:
            raise RingStoreError(f"Unknown ring: {ring_id}")

        resolved = ring.model_copy(update={'status': RingStatus.RESOLVED})
        if self.redis_client is None:
            with self._lock:
                self._memory[ring_id] = resolved
        else:
            try:
                self.redis_client.set(RING_KEY_PREFIX + ring_id, resolved.model_dump_json())
            except redis.RedisError as e:
                raise RingStoreError(f"Failed to resolve ring {ring_id}: {e}") from e

        logger.info("Fraud ring resolved", ring_id=ring_id)
        return resolved

    def check_health(self) -> bool:
        """
        Check if the ring store is reachable.

        Returns:
            True for the in-memory backend or a responsive Redis
        """
        if self.redis_client is None:
            return True

        try:
            self.redis_client.ping()
            return True
        except redis.RedisError:
            return False
