"""Tests for the scoring orchestrator"""

import asyncio

import pytest

from src.constants import Decision, RING_MARKER
from src.models.fraud_ring import FraudRing
from src.models.scored_transaction import AgentResult
from src.models.scoring_config import OrchestratorConfig, ScoringConfig
from src.orchestrator.retry_handler import retry_with_exponential_backoff
from src.orchestrator.ring_store import RingStore
from src.orchestrator.scoring_orchestrator import ScoringOrchestrator
from src.tools.embedding_provider import HashingEmbeddingProvider
from src.utils.errors import FraudScoringError, PartialAgentFailure, StoreUnavailable
from tests.builders import MIAMI, StaticEmbeddingProvider, build_store, make_txn, make_user

AGENTS = ["pattern", "anomaly", "geographic", "merchant", "network"]


class StubAgent:
    """Agent double with a fixed score, optional delay and optional failure"""

    def __init__(self, name, score=0.2, delay=0.0, error=None, ring=None):
        self.name = name
        self.score = score
        self.delay = delay
        self.error = error
        self.ring = ring
        self.cancelled = False

    async def analyze(self, transaction):
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return AgentResult(
            agent=self.name,
            score=self.score,
            evidence=f"{self.name} evidence",
            ring=self.ring,
            ring_active=self.ring is not None and self.ring.is_active,
        )


def _config(agent_timeout_ms=50, request_deadline_ms=2000):
    return ScoringConfig(orchestrator=OrchestratorConfig(
        agent_timeout_ms=agent_timeout_ms, request_deadline_ms=request_deadline_ms
    ))


def _orchestrator(agents, config=None, store=None):
    return ScoringOrchestrator(
        store or build_store(),
        StaticEmbeddingProvider(),
        config=config or _config(),
        ring_store=RingStore(backend="memory"),
        agents=agents,
    )


def _agents(**overrides):
    return [overrides.get(name, StubAgent(name)) for name in AGENTS]


def test_all_agents_healthy():
    result = _orchestrator(_agents()).score(make_txn("t1"))

    assert result.degraded_agents == []
    assert result.partial_failure is False
    assert result.risk_score == pytest.approx(0.2)
    assert result.decision == Decision.APPROVE
    assert set(result.evidence) == set(AGENTS)


def test_single_timeout_uses_default_score():
    agents = _agents(anomaly=StubAgent("anomaly", delay=1.0))

    result = _orchestrator(agents).score(make_txn("t1"))

    assert result.degraded_agents == ["anomaly"]
    assert result.agent_scores.anomaly == pytest.approx(0.5)
    assert result.partial_failure is False
    assert "timeout" in result.evidence["anomaly"]
    assert result.raise_for_partial_failure() is result


def test_three_timeouts_flag_partial_failure():
    agents = _agents(
        pattern=StubAgent("pattern", delay=1.0),
        anomaly=StubAgent("anomaly", delay=1.0),
        merchant=StubAgent("merchant", delay=1.0),
    )

    result = _orchestrator(agents).score(make_txn("t1"))

    assert sorted(result.degraded_agents) == ["anomaly", "merchant", "pattern"]
    assert result.partial_failure is True
    with pytest.raises(PartialAgentFailure) as excinfo:
        result.raise_for_partial_failure()
    assert excinfo.value.result is result


def test_internal_error_degrades_without_raising():
    agents = _agents(geographic=StubAgent("geographic", error=KeyError("lat")))

    result = _orchestrator(agents).score(make_txn("t1"))

    assert result.degraded_agents == ["geographic"]
    assert "internal_error" in result.evidence["geographic"]
    assert result.agent_scores.geographic == pytest.approx(0.5)


def test_request_deadline_cancels_pending_agents():
    slow = StubAgent("network", delay=5.0)
    config = _config(agent_timeout_ms=10000, request_deadline_ms=50)

    result = _orchestrator(_agents(network=slow), config=config).score(make_txn("t1"))

    assert slow.cancelled is True
    assert result.degraded_agents == ["network"]
    assert "deadline" in result.evidence["network"]


def test_unhealthy_store_is_fatal():
    store = build_store()
    store.set_available(False)

    with pytest.raises(StoreUnavailable):
        _orchestrator(_agents(), store=store).score(make_txn("t1"))


def test_store_outage_in_agent_propagates_and_cancels_others():
    slow = StubAgent("network", delay=5.0)
    agents = _agents(
        pattern=StubAgent("pattern", error=StoreUnavailable("connection reset")),
        network=slow,
    )
    config = _config(agent_timeout_ms=10000, request_deadline_ms=10000)

    with pytest.raises(StoreUnavailable):
        _orchestrator(agents, config=config).score(make_txn("t1"))
    assert slow.cancelled is True


def test_active_ring_forces_review():
    ring = FraudRing(
        ring_id="device_fingerprint:dev_x",
        shared_identifier="dev_x",
        merchant="QuickCash Electronics",
        member_user_ids=["a", "b", "c"],
    )
    agents = _agents(network=StubAgent("network", score=0.0, ring=ring))

    result = _orchestrator(agents).score(make_txn("t1"))

    assert result.decision == Decision.REVIEW
    assert result.ring_detected is True
    assert result.fraud_ring_id == "device_fingerprint:dev_x"
    assert result.reasoning.startswith(RING_MARKER)


def test_agent_set_must_be_complete():
    with pytest.raises(ValueError):
        _orchestrator([StubAgent("pattern")])


def _ring_store_fixture():
    history = [
        make_txn(f"r{i}", user_id=f"u{i}", amount="1500.00", merchant="QuickCash Electronics",
                 category="electronics", location=MIAMI, minutes_ago=60 * 24 * (i + 1), device="dev_ring")
        for i in range(4)
    ]
    return build_store(
        transactions=history,
        users=[make_user("user_005", average_amount=70.0, home=MIAMI, daily_rate=1.0)],
        embedding_provider=HashingEmbeddingProvider(),
    )


def test_real_agents_detect_ring(relaxed_config):
    ring_store = RingStore(backend="memory")
    orchestrator = ScoringOrchestrator(
        _ring_store_fixture(), HashingEmbeddingProvider(), config=relaxed_config, ring_store=ring_store
    )
    txn = make_txn("t1", user_id="user_005", amount="1500.00", merchant="QuickCash Electronics",
                   category="electronics", location=MIAMI, device="dev_ring")

    result = orchestrator.score(txn)

    assert result.ring_detected is True
    assert result.decision != Decision.APPROVE
    assert ring_store.get_ring(result.fraud_ring_id).victim_count == 5
    assert result.degraded_agents == []


def test_repeated_scoring_is_idempotent(relaxed_config):
    ring_store = RingStore(backend="memory")
    orchestrator = ScoringOrchestrator(
        _ring_store_fixture(), HashingEmbeddingProvider(), config=relaxed_config, ring_store=ring_store
    )
    txn = make_txn("t1", user_id="user_005", amount="1500.00", merchant="QuickCash Electronics",
                   category="electronics", location=MIAMI, device="dev_ring")

    first = orchestrator.score(txn)
    second = orchestrator.score(txn)

    assert first.model_dump(exclude={'latency_ms'}) == second.model_dump(exclude={'latency_ms'})
    assert len(ring_store.list_rings()) == 1


def test_retry_handler():
    """Test retry logic with exponential backoff"""
    attempts = []

    def failing_func():
        attempts.append(1)
        if len(attempts) < 3:
            raise Exception("Test failure")
        return "success"

    result = retry_with_exponential_backoff(failing_func, max_retries=5, base_delay=0)
    assert result == "success"
    assert len(attempts) == 3


def test_retry_handler_exhaustion():
    """Test that retry handler raises error after max attempts"""
    def always_fail():
        raise Exception("Always fails")

    with pytest.raises(FraudScoringError):
        retry_with_exponential_backoff(always_fail, max_retries=3, base_delay=0)


def test_retry_handler_does_not_retry_other_errors():
    attempts = []

    def wrong_type():
        attempts.append(1)
        raise KeyError("not retryable")

    with pytest.raises(KeyError):
        retry_with_exponential_backoff(wrong_type, retry_on=(ValueError,))
    assert len(attempts) == 1
