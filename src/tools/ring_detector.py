"""Fraud ring detection by identifier-sharing clusters.

Rings are found with grouped distinct-count queries plus an in-memory
threshold check; no graph is stored. A ring is keyed by the device
fingerprint its members share. A burst of transactions on one device and
shared non-home locations within a short window raise the score as
secondary signals but do not create rings. A transaction without a device
fingerprint scores 0.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Optional

from src.models.fraud_ring import FraudRing, ring_id_for
from src.models.scoring_config import NetworkConfig
from src.models.transaction import Location, Transaction
from src.tools.geo import clip01, haversine_km
from src.tools.historical_store import HistoricalStore
from src.utils.logging import get_logger

logger = get_logger(__name__)

DEVICE_IDENTIFIER = "device_fingerprint"


def ring_score(member_count: int, min_members: int, base_score: float, decay: float) -> float:
    """
    Saturating ring score: base_score at the minimum member count, then
    closing the remaining gap to 1.0 by (1 - decay) per extra member.
    """
    if member_count < min_members:
        return 0.0
    return clip01(1.0 - (1.0 - base_score) * decay ** (member_count - min_members))


def shared_device_score(member_count: int, min_members: int, max_score: float) -> float:
    """Score for a device shared by fewer users than a ring needs"""
    if member_count < 2 or member_count >= min_members:
        return 0.0
    return clip01(max_score * (member_count - 1) / max(1, min_members - 2))


@dataclass
class RingAssessment:
    """Network signal for one transaction"""

    score: float
    evidence: str
    device_users: int = 0
    coordinated_users: int = 0
    ring: Optional[FraudRing] = None
    details: Dict[str, Any] = field(default_factory=dict)


class RingDetector:
    """Finds device-sharing clusters around a transaction"""

    def __init__(self, store: HistoricalStore, config: Optional[NetworkConfig] = None):
        self.store = store
        self.config = config or NetworkConfig()

    async def detect(
        self, transaction: Transaction, home_location: Optional[Location] = None
    ) -> RingAssessment:
        """
        Assess device sharing, device velocity and location coordination.

        Args:
            transaction: Transaction being scored
            home_location: The user's home, used to decide whether the
                transaction location counts as "away"

        Returns:
            RingAssessment; ``ring`` is set only when the device member count
            reaches the configured minimum
        """
        cfg = self.config
        if transaction.device_fingerprint is None:
            return RingAssessment(
                score=0.0,
                evidence="No device fingerprint to cluster on",
                details={'device_users': 0, 'device_term': 0.0, 'device_velocity': 0,
                         'velocity_term': 0.0, 'coordinated_users': 0, 'coordination_term': 0.0},
            )

        device_term, ring = 0.0, None
        reasons = []

        device_users = await self._device_member_count(transaction)
        if device_users >= cfg.min_ring_members:
            ring = await self._build_ring(transaction)
            device_users = ring.victim_count
            device_term = ring_score(device_users, cfg.min_ring_members, cfg.ring_base_score, cfg.ring_decay)
            reasons.append(
                f"Device {transaction.device_fingerprint} shared by {device_users} users "
                f"in {cfg.lookback_days} days (ring threshold {cfg.min_ring_members})"
            )
        elif device_users > 1:
            device_term = shared_device_score(device_users, cfg.min_ring_members, cfg.shared_device_score)
            reasons.append(f"Device {transaction.device_fingerprint} used by {device_users} users")

        device_velocity = await self._device_velocity(transaction)
        velocity_term = 0.0
        if device_velocity > cfg.device_velocity_max:
            velocity_term = cfg.device_velocity_score
            reasons.append(
                f"{device_velocity} rapid transactions from this device "
                f"within {cfg.device_velocity_window_minutes:.0f} minutes"
            )

        coordinated_users = await self._coordinated_user_count(transaction, home_location)
        coordination_term = 0.0
        if coordinated_users >= cfg.coordination_min_users:
            coordination_term = cfg.coordination_score
            reasons.append(
                f"{coordinated_users} users transacting at the same away-from-home location "
                f"within {cfg.coordination_window_minutes:.0f} minutes"
            )

        score = clip01(max(device_term, velocity_term, coordination_term))
        evidence = "; ".join(reasons) if reasons else "No fraud ring indicators"

        return RingAssessment(
            score=score,
            evidence=evidence,
            device_users=device_users,
            coordinated_users=coordinated_users,
            ring=ring,
            details={
                'device_users': device_users,
                'device_term': round(device_term, 4),
                'device_velocity': device_velocity,
                'velocity_term': round(velocity_term, 4),
                'coordinated_users': coordinated_users,
                'coordination_term': round(coordination_term, 4),
            },
        )

    async def _device_velocity(self, transaction: Transaction) -> int:
        """Transactions on the device within the velocity window, current one included"""
        since = transaction.timestamp - timedelta(minutes=self.config.device_velocity_window_minutes)
        recent = await self.store.count_distinct(
            DEVICE_IDENTIFIER,
            transaction.device_fingerprint,
            'transaction_id',
            since=since,
            until=transaction.timestamp,
        )
        return recent + 1

    async def _device_member_count(self, transaction: Transaction) -> int:
        """Distinct users on the device within the lookback, current user included"""
        since = transaction.timestamp - timedelta(days=self.config.lookback_days)
        others = await self.store.count_distinct(
            DEVICE_IDENTIFIER,
            transaction.device_fingerprint,
            'user_id',
            since=since,
            until=transaction.timestamp,
            exclude=transaction.user_id,
        )
        return others + 1

    async def _coordinated_user_count(
        self, transaction: Transaction, home_location: Optional[Location]
    ) -> int:
        location = transaction.location
        if location is None:
            return 0
        if home_location is not None and haversine_km(home_location, location) <= self.config.home_radius_km:
            return 0

        since = transaction.timestamp - timedelta(minutes=self.config.coordination_window_minutes)
        others = await self.store.count_distinct(
            'location_cell',
            location,
            'user_id',
            since=since,
            until=transaction.timestamp,
            exclude=transaction.user_id,
        )
        return others + 1

    async def _build_ring(self, transaction: Transaction) -> FraudRing:
        since = transaction.timestamp - timedelta(days=self.config.lookback_days)
        members = await self.store.get_group_transactions(
            DEVICE_IDENTIFIER, transaction.device_fingerprint, since=since, until=transaction.timestamp
        )

        amounts = {txn.transaction_id: txn.amount for txn in members}
        amounts[transaction.transaction_id] = transaction.amount
        user_ids = {txn.user_id for txn in members} | {transaction.user_id}

        ring = FraudRing(
            ring_id=ring_id_for(DEVICE_IDENTIFIER, transaction.device_fingerprint),
            identifier_type=DEVICE_IDENTIFIER,
            shared_identifier=transaction.device_fingerprint,
            merchant=transaction.merchant,
            member_user_ids=sorted(user_ids),
            transaction_amounts=amounts,
            detected_at=transaction.timestamp,
            updated_at=transaction.timestamp,
        )
        logger.info(
            "Fraud ring cluster found",
            ring_id=ring.ring_id,
            victim_count=ring.victim_count,
            total_amount=str(ring.total_amount)
        )
        return ring
