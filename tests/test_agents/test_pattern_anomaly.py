"""Tests for the Pattern and Anomaly agents"""

import pytest

from src.agents.anomaly_agent import AnomalyAgent
from src.agents.pattern_agent import PatternAgent
from tests.builders import build_store, make_txn, make_user, run


# ---------------------------------------------------------------------------
# Pattern agent
# ---------------------------------------------------------------------------

def test_pattern_amount_at_average_scores_zero():
    store = build_store(users=[make_user(average_amount=100.0)])
    result = run(PatternAgent(store).analyze(make_txn("t1", amount="100.00")))

    assert result.score == 0.0
    assert result.details['baseline_source'] == 'profile'


def test_pattern_deviation_saturates_at_scale():
    store = build_store(users=[make_user(average_amount=100.0)])
    result = run(PatternAgent(store).analyze(make_txn("t1", amount="400.00")))

    assert result.score == pytest.approx(1.0)
    assert "3.0x" in result.evidence


def test_pattern_unfamiliar_category_adds_penalty():
    store = build_store(users=[make_user(average_amount=100.0)])
    familiar = run(PatternAgent(store).analyze(make_txn("t1", amount="250.00")))
    unfamiliar = run(PatternAgent(store).analyze(
        make_txn("t2", amount="250.00", merchant="Gadget Hub", category="electronics")
    ))

    assert familiar.score == pytest.approx(0.5)
    assert unfamiliar.score == pytest.approx(0.7)
    assert "unfamiliar category" in unfamiliar.evidence


def test_pattern_score_monotonic_in_deviation():
    store = build_store(users=[make_user(average_amount=100.0)])
    agent = PatternAgent(store)

    scores = [
        run(agent.analyze(make_txn(f"t{amount}", amount=f"{amount}.00"))).score
        for amount in range(100, 600, 25)
    ]
    assert scores == sorted(scores)
    assert all(0.0 <= score <= 1.0 for score in scores)


def test_pattern_without_baseline_scores_zero():
    store = build_store()
    result = run(PatternAgent(store).analyze(make_txn("t1", amount="5000.00")))

    assert result.score == 0.0
    assert "No spending baseline" in result.evidence


def test_pattern_baseline_from_history_when_profile_missing():
    history = [make_txn(f"h{i}", amount="50.00", minutes_ago=60 * 24 * (i + 1)) for i in range(3)]
    store = build_store(transactions=history)
    result = run(PatternAgent(store).analyze(make_txn("t1", amount="200.00")))

    assert result.details['baseline_source'] == 'history'
    assert result.details['average_amount'] == pytest.approx(50.0)
    assert result.score == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Anomaly agent
# ---------------------------------------------------------------------------

def test_anomaly_velocity_spike():
    """2/day baseline, 10 transactions in the window -> high score"""
    history = [make_txn(f"h{i}", minutes_ago=60 * (i + 1)) for i in range(9)]
    store = build_store(transactions=history, users=[make_user(daily_rate=2.0)])

    result = run(AnomalyAgent(store).analyze(make_txn("t1")))

    assert result.details['window_count'] == 10
    assert result.details['velocity_term'] == pytest.approx(1.0)
    assert result.score >= 0.8


def test_anomaly_quiet_user_scores_zero():
    history = [make_txn("h1", minutes_ago=180)]
    store = build_store(transactions=history, users=[make_user(daily_rate=2.0)])

    result = run(AnomalyAgent(store).analyze(make_txn("t1")))

    assert result.score == 0.0
    assert result.evidence == "Activity consistent with recent behaviour"


def test_anomaly_amount_jump():
    history = [make_txn("h1", amount="50.00", minutes_ago=60 * 48)]
    store = build_store(transactions=history, users=[make_user(daily_rate=2.0)])

    result = run(AnomalyAgent(store).analyze(make_txn("t1", amount="250.00")))

    assert result.details['jump_ratio'] == pytest.approx(5.0)
    assert result.score == pytest.approx(1.0)


def test_anomaly_rapid_repeat():
    history = [make_txn("h1", minutes_ago=2)]
    store = build_store(transactions=history, users=[make_user(daily_rate=10.0)])

    result = run(AnomalyAgent(store).analyze(make_txn("t1")))

    assert result.details['velocity_term'] == 0.0
    assert result.score == pytest.approx(0.5)
    assert "Repeat transaction" in result.evidence


def test_anomaly_score_is_max_not_average():
    # Jump saturates, velocity quiet: averaging would give well under 1.0
    history = [make_txn("h1", amount="10.00", minutes_ago=60 * 30)]
    store = build_store(transactions=history, users=[make_user(daily_rate=5.0)])

    result = run(AnomalyAgent(store).analyze(make_txn("t1", amount="100.00")))

    assert result.details['velocity_term'] == 0.0
    assert result.score == pytest.approx(1.0)


def test_anomaly_baseline_from_history_excludes_window():
    # Two per day for 29 days before the window -> 2.0 expected per 24h
    baseline = [
        make_txn(f"b{day}_{hour}", minutes_ago=60 * (24 * day + hour))
        for day in range(1, 30)
        for hour in (1, 2)
    ]
    in_window = [make_txn(f"w{i}", minutes_ago=60 * (i + 1)) for i in range(10)]
    store = build_store(transactions=baseline + in_window)

    result = run(AnomalyAgent(store).analyze(make_txn("t1")))

    assert result.details['expected_per_window'] == pytest.approx(2.0)
    assert result.details['window_count'] == 11
    assert result.score == pytest.approx(1.0)
