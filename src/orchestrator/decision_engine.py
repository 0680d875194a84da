"""Aggregator / decision engine

Fuses the five agent sub-scores into one risk score with a fixed weighting,
maps it to a decision, and builds the human-readable reasoning.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np

from src.constants import AGENT_ORDER, RING_MARKER, Decision
from src.models.scoring_config import DecisionThresholds, ScoringConfig
from src.tools.geo import clip01

# Largest population standard deviation of values in [0, 1]
MAX_SCORE_STD = 0.5

NO_SIGNALS_REASONING = "No notable risk signals"


@dataclass(frozen=True)
class AggregateDecision:
    risk_score: float
    decision: Decision
    confidence: float
    reasoning: str


def decide(risk_score: float, thresholds: DecisionThresholds, ring_active: bool = False) -> Decision:
    """
    Map a risk score to a decision.

    An active fraud ring forces at least REVIEW.
    """
    if risk_score >= thresholds.block:
        decision = Decision.BLOCK
    elif risk_score >= thresholds.review:
        decision = Decision.REVIEW
    else:
        decision = Decision.APPROVE

    if ring_active and decision == Decision.APPROVE:
        decision = Decision.REVIEW
    return decision


class DecisionEngine:
    """Weighted aggregation of agent sub-scores"""

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def risk_score(self, scores: Dict[str, float]) -> float:
        weights = self.config.weights.as_dict()
        return clip01(sum(weights[name] * scores[name] for name in weights))

    def aggregate(
        self,
        scores: Dict[str, float],
        evidence: Dict[str, str],
        ring_active: bool = False,
        degraded_agents: Sequence[str] = (),
    ) -> AggregateDecision:
        """
        Aggregate sub-scores into the final verdict.

        Args:
            scores: Sub-score per agent name, each in [0, 1]
            evidence: Evidence string per agent name
            ring_active: Whether the Network agent reported an ACTIVE ring
            degraded_agents: Agents whose score is the configured default

        Returns:
            AggregateDecision

        Raises:
            ValueError: If a sub-score is missing or out of bounds
        """
        for name in (agent.value for agent in AGENT_ORDER):
            if name not in scores:
                raise ValueError(f"Missing sub-score for agent: {name}")
            if not 0.0 <= scores[name] <= 1.0:
                raise ValueError(f"Sub-score for {name} out of bounds: {scores[name]}")

        risk = self.risk_score(scores)
        decision = decide(risk, self.config.thresholds, ring_active)

        values = np.array([scores[agent.value] for agent in AGENT_ORDER], dtype=float)
        confidence = clip01(1.0 - float(np.std(values)) / MAX_SCORE_STD)
        if degraded_agents:
            healthy = len(AGENT_ORDER) - len(degraded_agents)
            confidence = clip01(confidence * healthy / len(AGENT_ORDER))

        return AggregateDecision(
            risk_score=risk,
            decision=decision,
            confidence=confidence,
            reasoning=self._reasoning(scores, evidence, ring_active, degraded_agents),
        )

    def _reasoning(
        self,
        scores: Dict[str, float],
        evidence: Dict[str, str],
        ring_active: bool,
        degraded_agents: Sequence[str],
    ) -> str:
        notable = [
            f"{agent.value.capitalize()}: {evidence.get(agent.value, '')}"
            for agent in AGENT_ORDER
            if agent.value not in degraded_agents and scores[agent.value] > self.config.notable_threshold
        ]
        reasoning = " | ".join(notable) if notable else NO_SIGNALS_REASONING

        if ring_active:
            reasoning = f"{RING_MARKER} {reasoning}"
        if degraded_agents:
            reasoning += f" | Degraded: {', '.join(degraded_agents)}"
        return reasoning
