"""Scoring configuration data model

The weights, thresholds and per-agent constants are an explicit struct passed
into the agents and the decision engine, so the decision policy can be tuned
without touching agent logic.
"""

from typing import List

from pydantic import BaseModel, Field, model_validator

from src.constants import (
    AGENT_ORDER,
    AGENT_TIMEOUT_MS,
    DEFAULT_BLOCK_THRESHOLD,
    DEFAULT_MIN_RING_MEMBERS,
    DEFAULT_NOTABLE_THRESHOLD,
    DEFAULT_REVIEW_THRESHOLD,
    DEFAULT_SUB_SCORE,
    DEFAULT_TEXT_WEIGHT,
    DEFAULT_VECTOR_WEIGHT,
    DEFAULT_WEIGHTS,
    MAX_DEGRADED_AGENTS,
    REQUEST_DEADLINE_MS,
)

WEIGHT_TOLERANCE = 1e-6


class AgentWeights(BaseModel):
    """Aggregation weight per agent"""

    pattern: float = Field(default=DEFAULT_WEIGHTS["pattern"], ge=0, le=1)
    anomaly: float = Field(default=DEFAULT_WEIGHTS["anomaly"], ge=0, le=1)
    geographic: float = Field(default=DEFAULT_WEIGHTS["geographic"], ge=0, le=1)
    merchant: float = Field(default=DEFAULT_WEIGHTS["merchant"], ge=0, le=1)
    network: float = Field(default=DEFAULT_WEIGHTS["network"], ge=0, le=1)

    @model_validator(mode="after")
    def check_sum(self) -> "AgentWeights":
        total = sum(self.as_dict().values())
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Agent weights must sum to 1.0, got {total:.6f}")
        return self

    def as_dict(self) -> dict:
        return {name.value: getattr(self, name.value) for name in AGENT_ORDER}


class DecisionThresholds(BaseModel):
    """Risk score cut-offs for REVIEW and BLOCK"""

    review: float = Field(default=DEFAULT_REVIEW_THRESHOLD, ge=0, le=1)
    block: float = Field(default=DEFAULT_BLOCK_THRESHOLD, ge=0, le=1)

    @model_validator(mode="after")
    def check_order(self) -> "DecisionThresholds":
        if self.review >= self.block:
            raise ValueError(
                f"review threshold ({self.review}) must be below block threshold ({self.block})"
            )
        return self


class OrchestratorConfig(BaseModel):
    """Latency budget and degradation policy"""

    agent_timeout_ms: float = Field(default=AGENT_TIMEOUT_MS, gt=0)
    request_deadline_ms: float = Field(default=REQUEST_DEADLINE_MS, gt=0)
    default_sub_score: float = Field(default=DEFAULT_SUB_SCORE, ge=0, le=1)
    max_degraded_agents: int = Field(default=MAX_DEGRADED_AGENTS, ge=0, le=len(AGENT_ORDER))


class PatternConfig(BaseModel):
    deviation_scale: float = Field(default=3.0, gt=0, description="Deviation (x average) that saturates the amount term")
    category_penalty: float = Field(default=0.2, ge=0, le=1)
    history_days: int = Field(default=90, gt=0)


class AnomalyConfig(BaseModel):
    velocity_window_hours: float = Field(default=24.0, gt=0)
    baseline_days: int = Field(default=30, gt=0)
    min_baseline_rate: float = Field(default=1.0, gt=0, description="Floor on expected transactions per window")
    velocity_saturation_ratio: float = Field(default=5.0, gt=1)
    amount_lookback_hours: float = Field(default=168.0, gt=0)
    recent_limit: int = Field(default=20, gt=0)
    jump_saturation_ratio: float = Field(default=5.0, gt=1)
    rapid_repeat_minutes: float = Field(default=5.0, ge=0)
    rapid_repeat_score: float = Field(default=0.5, ge=0, le=1)


class GeographicConfig(BaseModel):
    max_travel_speed_kmh: float = Field(default=500.0, gt=0)
    min_travel_distance_km: float = Field(default=50.0, ge=0)
    home_radius_km: float = Field(default=100.0, ge=0)
    home_distance_scale_km: float = Field(default=1000.0, gt=0)
    travel_history_days: int = Field(default=90, gt=0)


class MerchantConfig(BaseModel):
    text_weight: float = Field(default=DEFAULT_TEXT_WEIGHT, ge=0, le=1)
    vector_weight: float = Field(default=DEFAULT_VECTOR_WEIGHT, ge=0, le=1)
    known_fraud_rate: float = Field(default=0.3, ge=0, le=1, description="Fraud rate marking a merchant document as known fraud")
    min_vector_similarity: float = Field(default=0.5, ge=0, le=1)
    search_limit: int = Field(default=10, gt=0)
    pass_timeout_ms: float = Field(default=60.0, gt=0)
    fraud_terms: List[str] = Field(default_factory=list, description="Extra terms appended to the lexical query")

    @model_validator(mode="after")
    def check_fusion_weights(self) -> "MerchantConfig":
        total = self.text_weight + self.vector_weight
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"text_weight + vector_weight must equal 1.0, got {total:.6f}")
        return self


class NetworkConfig(BaseModel):
    min_ring_members: int = Field(default=DEFAULT_MIN_RING_MEMBERS, ge=2)
    lookback_days: int = Field(default=30, gt=0)
    ring_base_score: float = Field(default=0.6, ge=0, le=1)
    ring_decay: float = Field(default=0.5, gt=0, lt=1)
    shared_device_score: float = Field(default=0.3, ge=0, le=1)
    home_radius_km: float = Field(default=100.0, ge=0)
    coordination_window_minutes: float = Field(default=60.0, gt=0)
    coordination_min_users: int = Field(default=5, ge=2)
    coordination_score: float = Field(default=0.5, ge=0, le=1)
    device_velocity_window_minutes: float = Field(default=60.0, gt=0)
    device_velocity_max: int = Field(default=10, ge=1, description="Transactions per device window above which the velocity term applies")
    device_velocity_score: float = Field(default=0.5, ge=0, le=1)
    write_retries: int = Field(default=3, ge=1)


class ScoringConfig(BaseModel):
    """Complete scoring configuration"""

    weights: AgentWeights = Field(default_factory=AgentWeights)
    thresholds: DecisionThresholds = Field(default_factory=DecisionThresholds)
    notable_threshold: float = Field(default=DEFAULT_NOTABLE_THRESHOLD, ge=0, le=1)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    pattern: PatternConfig = Field(default_factory=PatternConfig)
    anomaly: AnomalyConfig = Field(default_factory=AnomalyConfig)
    geographic: GeographicConfig = Field(default_factory=GeographicConfig)
    merchant: MerchantConfig = Field(default_factory=MerchantConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
