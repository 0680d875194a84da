"""Scoring result data models"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from src.constants import AGENT_ORDER, Decision
from src.models.fraud_ring import FraudRing
from src.models.transaction import Transaction


class AgentResult(BaseModel):
    """One agent's bounded sub-score and the evidence behind it"""

    agent: str = Field(..., description="Agent name")
    score: float = Field(..., ge=0, le=1, description="Sub-score in [0, 1]")
    evidence: str = Field(default="", description="Human-readable explanation")
    details: Dict[str, Any] = Field(default_factory=dict, description="Numbers behind the score")
    degraded: bool = Field(default=False, description="Score is the configured default, not a real signal")
    error: Optional[str] = Field(None, description="Timeout or internal error that caused degradation")
    ring: Optional[FraudRing] = Field(None, description="Detected ring (network agent only)")
    ring_active: bool = Field(default=False)
    latency_ms: float = Field(default=0.0, ge=0)


class AgentScores(BaseModel):
    """Per-agent sub-scores"""

    pattern: float = Field(..., ge=0, le=1)
    anomaly: float = Field(..., ge=0, le=1)
    geographic: float = Field(..., ge=0, le=1)
    merchant: float = Field(..., ge=0, le=1)
    network: float = Field(..., ge=0, le=1)

    class Config:
        frozen = True

    def as_dict(self) -> Dict[str, float]:
        return {name.value: getattr(self, name.value) for name in AGENT_ORDER}


class ScoredTransaction(BaseModel):
    """A transaction plus its scoring verdict; produced once, never mutated"""

    transaction: Transaction
    agent_scores: AgentScores
    risk_score: float = Field(..., ge=0, le=1)
    decision: Decision
    confidence: float = Field(..., ge=0, le=1)
    fraud_ring_id: Optional[str] = Field(None, description="Reference to the detected ring")
    ring_detected: bool = Field(default=False)
    reasoning: str = Field(..., description="Concatenated evidence of notable agents")
    evidence: Dict[str, str] = Field(default_factory=dict, description="Evidence per agent")
    degraded_agents: List[str] = Field(default_factory=list)
    partial_failure: bool = Field(default=False, description="More agents degraded than the policy allows")
    latency_ms: float = Field(default=0.0, ge=0, description="Wall-clock scoring latency")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "agent_scores": {
                    "pattern": 0.8,
                    "anomaly": 0.2,
                    "geographic": 0.0,
                    "merchant": 0.623,
                    "network": 0.0
                },
                "risk_score": 0.39575,
                "decision": "APPROVE",
                "confidence": 0.36,
                "reasoning": "Pattern: Amount $3000.00 deviates 34.1x from average $85.50",
                "degraded_agents": [],
                "partial_failure": False,
                "latency_ms": 12.4
            }
        }

    def raise_for_partial_failure(self) -> "ScoredTransaction":
        """Raise PartialAgentFailure when too many agents degraded"""
        if self.partial_failure:
            from src.utils.errors import PartialAgentFailure
            raise PartialAgentFailure(self)
        return self
