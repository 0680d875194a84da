"""Tests for the Geographic and Network agents"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from src.agents.geographic_agent import GeographicAgent
from src.agents.network_agent import NetworkAgent
from src.constants import RingStatus
from src.models.scoring_config import NetworkConfig
from src.orchestrator.ring_store import RingStore
from src.tools.ring_detector import ring_score, shared_device_score
from src.utils.errors import RingStoreError
from tests.builders import BOSTON, LA, LONDON, MIAMI, NYC, PARIS, build_store, make_txn, make_user, run


# Geographic agent

def test_geographic_no_location_scores_zero():
    store = build_store(users=[make_user()])
    result = run(GeographicAgent(store).analyze(make_txn("t1", location=None)))

    assert result.score == 0.0
    assert result.evidence == "No location on transaction"


def test_geographic_impossible_travel():
    history = [make_txn("h1", location=LA, minutes_ago=30)]
    store = build_store(transactions=history, users=[make_user(home=NYC)])

    result = run(GeographicAgent(store).analyze(make_txn("t1", location=NYC)))

    assert result.details['implied_speed_kmh'] > 5000
    assert result.score == pytest.approx(1.0)
    assert "Impossible travel" in result.evidence


def test_geographic_plausible_travel_has_no_speed_term():
    history = [make_txn("h1", location=NYC, minutes_ago=180)]
    store = build_store(transactions=history, users=[make_user(home=NYC)])

    result = run(GeographicAgent(store).analyze(make_txn("t1", location=BOSTON)))

    assert result.details['travel_term'] == 0.0
    assert 0.0 < result.score < 0.3  # Boston is ~300km from home


def test_geographic_far_from_home_without_travel_history():
    store = build_store(users=[make_user(home=NYC)])
    result = run(GeographicAgent(store).analyze(make_txn("t1", location=LONDON)))

    assert result.score == pytest.approx(1.0)
    assert "from home" in result.evidence


def test_geographic_travel_history_suppresses_home_term():
    history = [make_txn("h1", location=PARIS, minutes_ago=60 * 24 * 10)]
    store = build_store(transactions=history, users=[make_user(home=NYC)])

    result = run(GeographicAgent(store).analyze(make_txn("t1", location=LONDON)))

    assert result.details['home_term'] == 0.0
    assert result.score == 0.0


# Ring detector helpers

def test_ring_score_saturates_toward_one():
    assert ring_score(2, 3, 0.6, 0.5) == 0.0
    assert ring_score(3, 3, 0.6, 0.5) == pytest.approx(0.6)
    assert ring_score(5, 3, 0.6, 0.5) == pytest.approx(0.9)

    scores = [ring_score(members, 3, 0.6, 0.5) for members in range(3, 40)]
    assert scores == sorted(scores)
    assert all(score <= 1.0 for score in scores)


def test_shared_device_score_below_ring_threshold():
    assert shared_device_score(1, 3, 0.3) == 0.0
    assert shared_device_score(2, 3, 0.3) == pytest.approx(0.3)
    assert shared_device_score(3, 3, 0.3) == 0.0


# Network agent

def _ring_history(device="dev_ring", users=("u1", "u2", "u3", "u4")):
    return [
        make_txn(f"r{i}", user_id=user, amount="1500.00", merchant="QuickCash Electronics",
                 category="electronics", location=MIAMI, minutes_ago=60 * 24 * (i + 1), device=device)
        for i, user in enumerate(users)
    ]


def test_network_ring_of_five_users():
    store = build_store(transactions=_ring_history())
    ring_store = RingStore(backend="memory")
    txn = make_txn("t1", user_id="user_005", amount="1500.00", merchant="QuickCash Electronics",
                   category="electronics", location=MIAMI, device="dev_ring")

    result = run(NetworkAgent(store, NetworkConfig(), ring_store).analyze(txn))

    assert result.ring is not None
    assert result.ring.victim_count == 5
    assert result.ring.total_amount == Decimal("7500.00")
    assert result.ring_active is True
    assert result.score == pytest.approx(0.9)

    stored = ring_store.get_ring(result.ring.ring_id)
    assert stored.victim_count == 5
    assert "t1" in stored.member_transaction_ids


def test_network_repeat_detection_does_not_inflate_ring():
    store = build_store(transactions=_ring_history())
    ring_store = RingStore(backend="memory")
    agent = NetworkAgent(store, NetworkConfig(), ring_store)
    txn = make_txn("t1", user_id="user_005", amount="1500.00", location=MIAMI, device="dev_ring")

    first = run(agent.analyze(txn))
    second = run(agent.analyze(txn))

    assert first.ring.total_amount == second.ring.total_amount
    assert len(ring_store.list_rings()) == 1
    assert ring_store.get_ring(first.ring.ring_id).total_amount == Decimal("7500.00")


def test_network_shared_device_below_threshold():
    store = build_store(transactions=_ring_history(users=("u1",)))
    txn = make_txn("t1", user_id="user_005", device="dev_ring")

    result = run(NetworkAgent(store, NetworkConfig(), RingStore(backend="memory")).analyze(txn))

    assert result.ring is None
    assert result.score == pytest.approx(0.3)


def test_network_without_fingerprint_scores_zero():
    store = build_store(transactions=_ring_history())
    result = run(NetworkAgent(store).analyze(make_txn("t1", user_id="user_005", device=None)))

    assert result.score == 0.0
    assert result.ring is None
    assert "No device fingerprint" in result.evidence


def test_network_ring_write_failure_still_reports_ring():
    store = build_store(transactions=_ring_history())
    ring_store = MagicMock()
    ring_store.upsert_ring.side_effect = RingStoreError("redis down")
    txn = make_txn("t1", user_id="user_005", location=MIAMI, device="dev_ring")

    result = run(NetworkAgent(store, NetworkConfig(write_retries=3), ring_store).analyze(txn))

    assert ring_store.upsert_ring.call_count == 3
    assert result.ring is not None
    assert result.ring_active is True


def test_network_resolved_ring_is_not_active():
    store = build_store(transactions=_ring_history())
    ring_store = RingStore(backend="memory")
    agent = NetworkAgent(store, NetworkConfig(), ring_store)
    txn = make_txn("t1", user_id="user_005", location=MIAMI, device="dev_ring")

    first = run(agent.analyze(txn))
    ring_store.resolve_ring(first.ring.ring_id)
    second = run(agent.analyze(txn))

    assert second.ring.status == RingStatus.RESOLVED
    assert second.ring_active is False


def test_network_coordinated_users_away_from_home():
    others = [
        make_txn(f"c{i}", user_id=f"tourist_{i}", location=LONDON, minutes_ago=10 + i)
        for i in range(4)
    ]
    store = build_store(transactions=others, users=[make_user("user_005", home=NYC)])
    txn = make_txn("t1", user_id="user_005", location=LONDON, device="dev_tourist")

    result = run(NetworkAgent(store).analyze(txn))

    assert result.details['coordinated_users'] == 5
    assert result.score == pytest.approx(0.5)


def test_network_coordination_ignored_at_home():
    others = [
        make_txn(f"c{i}", user_id=f"neighbour_{i}", location=LONDON, minutes_ago=10 + i)
        for i in range(4)
    ]
    store = build_store(transactions=others, users=[make_user("user_005", home=LONDON)])

    result = run(NetworkAgent(store).analyze(make_txn("t1", user_id="user_005", location=LONDON)))

    assert result.score == 0.0


def test_network_missing_fingerprint_ignores_coordination():
    others = [
        make_txn(f"c{i}", user_id=f"tourist_{i}", location=LONDON, minutes_ago=10 + i)
        for i in range(4)
    ]
    store = build_store(transactions=others, users=[make_user("user_005", home=NYC)])
    txn = make_txn("t1", user_id="user_005", location=LONDON, device=None)

    result = run(NetworkAgent(store).analyze(txn))

    assert result.score == 0.0
    assert result.evidence == "No device fingerprint to cluster on"
    assert result.details['coordinated_users'] == 0


def test_network_device_velocity_burst():
    burst = [make_txn(f"b{i}", user_id="user_005", device="dev_burst", minutes_ago=1 + 5 * i) for i in range(11)]
    store = build_store(transactions=burst, users=[make_user("user_005", home=NYC)])

    result = run(NetworkAgent(store).analyze(make_txn("t1", user_id="user_005", device="dev_burst")))

    assert result.details['device_velocity'] == 12
    assert result.score == pytest.approx(0.5)
    assert result.ring is None
    assert "12 rapid transactions from this device" in result.evidence


def test_network_device_velocity_at_limit_scores_zero():
    burst = [make_txn(f"b{i}", user_id="user_005", device="dev_burst", minutes_ago=1 + 5 * i) for i in range(9)]
    older = [make_txn("old", user_id="user_005", device="dev_burst", minutes_ago=90)]
    store = build_store(transactions=burst + older, users=[make_user("user_005", home=NYC)])

    result = run(NetworkAgent(store).analyze(make_txn("t1", user_id="user_005", device="dev_burst")))

    assert result.details['device_velocity'] == 10
    assert result.score == 0.0
