"""Scoring Orchestrator - concurrent fan-out to the signal agents"""

import asyncio
import time
from typing import Dict, List, Optional, Sequence

from src.agents.anomaly_agent import AnomalyAgent
from src.agents.base import SignalAgent
from src.agents.geographic_agent import GeographicAgent
from src.agents.merchant_agent import MerchantAgent
from src.agents.network_agent import NetworkAgent
from src.agents.pattern_agent import PatternAgent
from src.constants import AGENT_ORDER, AgentName, DegradationReason
from src.models.scored_transaction import AgentResult, AgentScores, ScoredTransaction
from src.models.scoring_config import ScoringConfig
from src.models.transaction import Transaction
from src.orchestrator.decision_engine import DecisionEngine
from src.orchestrator.ring_store import RingStore
from src.tools.embedding_provider import EmbeddingProvider
from src.tools.historical_store import HistoricalStore
from src.utils.errors import AgentExecutionError, AgentInternalError, AgentTimeout, StoreUnavailable
from src.utils.logging import get_logger
from src.utils.metrics import (
    agent_degradations,
    agent_execution_time,
    partial_failures,
    scoring_latency,
    store_unavailable,
    transactions_scored
)

logger = get_logger(__name__)


def build_agents(
    store: HistoricalStore,
    embedding_provider: EmbeddingProvider,
    config: ScoringConfig,
    ring_store: Optional[RingStore] = None,
) -> List[SignalAgent]:
    """The five signal agents, in aggregation order"""
    return [
        PatternAgent(store, config.pattern),
        AnomalyAgent(store, config.anomaly),
        GeographicAgent(store, config.geographic),
        MerchantAgent(store, embedding_provider, config.merchant),
        NetworkAgent(store, config.network, ring_store),
    ]


class ScoringOrchestrator:
    """Scores one transaction by running all agents concurrently"""

    def __init__(
        self,
        store: HistoricalStore,
        embedding_provider: EmbeddingProvider,
        config: Optional[ScoringConfig] = None,
        ring_store: Optional[RingStore] = None,
        agents: Optional[Sequence[SignalAgent]] = None,
    ):
        self.store = store
        self.config = config or ScoringConfig()
        self.ring_store = ring_store if ring_store is not None else RingStore()
        self.agents = list(agents) if agents is not None else build_agents(
            store, embedding_provider, self.config, self.ring_store
        )
        self.decision_engine = DecisionEngine(self.config)

        names = sorted(agent.name for agent in self.agents)
        expected = sorted(agent.value for agent in AGENT_ORDER)
        if names != expected:
            raise ValueError(f"Orchestrator needs exactly one agent per signal {expected}, got {names}")

    def score(self, transaction: Transaction) -> ScoredTransaction:
        """Synchronous wrapper around score_async"""
        return asyncio.run(self.score_async(transaction))

    async def score_async(self, transaction: Transaction) -> ScoredTransaction:
        """
        Score a transaction.

        Args:
            transaction: Immutable transaction to score

        Returns:
            ScoredTransaction; degraded agents are recorded, not raised

        Raises:
            StoreUnavailable: If the historical store cannot be reached
        """
        start = time.perf_counter()
        orch = self.config.orchestrator

        if not await self.store.health_check():
            store_unavailable.inc()
            logger.error("❌ Historical store unhealthy", transaction_id=transaction.transaction_id)
            raise StoreUnavailable("Historical store health check failed")

        tasks = {
            asyncio.create_task(self._run_agent(agent, transaction)): agent.name
            for agent in self.agents
        }
        remaining = max(0.0, orch.request_deadline_ms / 1000.0 - (time.perf_counter() - start))
        done, pending = await asyncio.wait(
            tasks, timeout=remaining, return_when=asyncio.FIRST_EXCEPTION
        )

        # Only StoreUnavailable escapes _run_agent
        failed = [task for task in done if task.exception() is not None]
        if failed:
            await self._cancel(pending)
            store_unavailable.inc()
            logger.error("❌ Historical store unavailable during scoring", transaction_id=transaction.transaction_id)
            raise failed[0].exception()

        results: Dict[str, AgentResult] = {tasks[task]: task.result() for task in done}
        if pending:
            await self._cancel(pending)
            for task in pending:
                name = tasks[task]
                results[name] = self._degraded(
                    name,
                    AgentTimeout(name, f"cancelled at the {orch.request_deadline_ms:.0f}ms request deadline"),
                    DegradationReason.TIMEOUT,
                )

        return self._assemble(transaction, results, start)

    async def _run_agent(self, agent: SignalAgent, transaction: Transaction) -> AgentResult:
        """Run one agent under its timeout; any failure but a store outage degrades"""
        timeout_ms = self.config.orchestrator.agent_timeout_ms
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(agent.analyze(transaction), timeout=timeout_ms / 1000.0)
        except StoreUnavailable:
            raise
        except asyncio.TimeoutError:
            return self._degraded(
                agent.name,
                AgentTimeout(agent.name, f"exceeded {timeout_ms:.0f}ms"),
                DegradationReason.TIMEOUT,
            )
        except Exception as e:
            logger.warning(f"⚠️ Agent {agent.name} failed: {e}", transaction_id=transaction.transaction_id)
            return self._degraded(
                agent.name,
                AgentInternalError(agent.name, f"{type(e).__name__}: {e}"),
                DegradationReason.INTERNAL_ERROR,
            )
        finally:
            agent_execution_time.labels(agent_name=agent.name).observe(time.perf_counter() - started)

        latency_ms = (time.perf_counter() - started) * 1000.0
        return result.model_copy(update={'agent': agent.name, 'latency_ms': latency_ms})

    def _degraded(self, name: str, error: AgentExecutionError, reason: DegradationReason) -> AgentResult:
        default = self.config.orchestrator.default_sub_score
        agent_degradations.labels(agent_name=name, reason=reason.value).inc()
        logger.warning(f"⚠️ Agent degraded to default score {default}", agent_name=name, reason=reason.value)
        return AgentResult(
            agent=name,
            score=default,
            evidence=f"Degraded ({reason.value}): {error}",
            degraded=True,
            error=f"{type(error).__name__}: {error}",
        )

    @staticmethod
    async def _cancel(pending) -> None:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def _assemble(
        self, transaction: Transaction, results: Dict[str, AgentResult], start: float
    ) -> ScoredTransaction:
        names = [agent.value for agent in AGENT_ORDER]
        scores = {name: results[name].score for name in names}
        evidence = {name: results[name].evidence for name in names}
        degraded = [name for name in names if results[name].degraded]

        network = results[AgentName.NETWORK.value]
        ring = None if network.degraded else network.ring
        ring_active = ring is not None and network.ring_active

        verdict = self.decision_engine.aggregate(
            scores, evidence, ring_active=ring_active, degraded_agents=degraded
        )
        partial = len(degraded) > self.config.orchestrator.max_degraded_agents
        latency_ms = (time.perf_counter() - start) * 1000.0

        scored = ScoredTransaction(
            transaction=transaction,
            agent_scores=AgentScores(**scores),
            risk_score=verdict.risk_score,
            decision=verdict.decision,
            confidence=verdict.confidence,
            fraud_ring_id=ring.ring_id if ring is not None else None,
            ring_detected=ring is not None,
            reasoning=verdict.reasoning,
            evidence=evidence,
            degraded_agents=degraded,
            partial_failure=partial,
            latency_ms=latency_ms,
        )

        transactions_scored.labels(decision=scored.decision.value).inc()
        scoring_latency.observe(latency_ms / 1000.0)
        if partial:
            partial_failures.inc()
            logger.warning(
                f"⚠️ Partial failure: {len(degraded)} agents degraded",
                transaction_id=transaction.transaction_id,
                degraded_agents=degraded
            )

        logger.info(
            "✅ Transaction scored",
            transaction_id=transaction.transaction_id,
            risk_score=round(scored.risk_score, 4),
            decision=scored.decision.value,
            confidence=round(scored.confidence, 4),
            fraud_ring_id=scored.fraud_ring_id,
            latency_ms=round(latency_ms, 2)
        )
        return scored
