"""Utility modules"""

from .errors import (
    FraudScoringError,
    ConfigurationError,
    StoreUnavailable,
    EmbeddingUnavailable,
    RingStoreError,
    AgentExecutionError,
    AgentTimeout,
    AgentInternalError,
    PartialAgentFailure
)

__all__ = [
    "FraudScoringError",
    "ConfigurationError",
    "StoreUnavailable",
    "EmbeddingUnavailable",
    "RingStoreError",
    "AgentExecutionError",
    "AgentTimeout",
    "AgentInternalError",
    "PartialAgentFailure"
]
