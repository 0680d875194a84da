"""Constants and enums for the fraud scoring system"""

from enum import Enum


class Decision(str, Enum):
    """Final scoring decision"""
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    BLOCK = "BLOCK"

    @property
    def rank(self) -> int:
        return _DECISION_RANK[self]


_DECISION_RANK = {
    Decision.APPROVE: 0,
    Decision.REVIEW: 1,
    Decision.BLOCK: 2,
}


class RingStatus(str, Enum):
    """Fraud ring investigation status"""
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"


class AgentName(str, Enum):
    """The fixed set of signal agents"""
    PATTERN = "pattern"
    ANOMALY = "anomaly"
    GEOGRAPHIC = "geographic"
    MERCHANT = "merchant"
    NETWORK = "network"


class DegradationReason(str, Enum):
    """Why an agent's sub-score was replaced by the default"""
    TIMEOUT = "timeout"
    INTERNAL_ERROR = "internal_error"


AGENT_ORDER = [
    AgentName.PATTERN,
    AgentName.ANOMALY,
    AgentName.GEOGRAPHIC,
    AgentName.MERCHANT,
    AgentName.NETWORK,
]

# Default aggregation weights (sum to 1.0)
DEFAULT_WEIGHTS = {
    AgentName.PATTERN.value: 0.25,
    AgentName.ANOMALY.value: 0.20,
    AgentName.GEOGRAPHIC.value: 0.15,
    AgentName.MERCHANT.value: 0.25,
    AgentName.NETWORK.value: 0.15,
}

# Decision thresholds
DEFAULT_BLOCK_THRESHOLD = 0.7
DEFAULT_REVIEW_THRESHOLD = 0.4
DEFAULT_NOTABLE_THRESHOLD = 0.5

# Latency budget
REQUEST_DEADLINE_MS = 100
AGENT_TIMEOUT_MS = 80
DEFAULT_SUB_SCORE = 0.5
MAX_DEGRADED_AGENTS = 2

# Hybrid search fusion
DEFAULT_TEXT_WEIGHT = 0.3
DEFAULT_VECTOR_WEIGHT = 0.7

# Ring detection
DEFAULT_MIN_RING_MEMBERS = 3
RING_MARKER = "[FRAUD RING DETECTED]"

EARTH_RADIUS_KM = 6371.0
