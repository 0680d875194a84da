"""Data models for the fraud scoring system"""

from .transaction import Transaction, Location
from .profiles import UserProfile, MerchantProfile
from .fraud_ring import FraudRing
from .scored_transaction import AgentResult, AgentScores, ScoredTransaction
from .scoring_config import ScoringConfig

__all__ = [
    "Transaction",
    "Location",
    "UserProfile",
    "MerchantProfile",
    "FraudRing",
    "AgentResult",
    "AgentScores",
    "ScoredTransaction",
    "ScoringConfig",
]
