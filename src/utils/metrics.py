"""Prometheus metrics definitions"""

from prometheus_client import Counter, Histogram


# Request metrics
transactions_scored = Counter(
    'transactions_scored_total',
    'Transactions scored, by decision',
    labelnames=['decision']
)

scoring_latency = Histogram(
    'scoring_latency_seconds',
    'Wall-clock time to score one transaction',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5]
)

partial_failures = Counter(
    'scoring_partial_failures_total',
    'Scoring requests with more degraded agents than allowed'
)

store_unavailable = Counter(
    'historical_store_unavailable_total',
    'Scoring requests failed because the historical store was unreachable'
)

# Agent metrics
agent_execution_time = Histogram(
    'agent_execution_time_seconds',
    'Execution time per agent',
    labelnames=['agent_name'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.08, 0.1]
)

agent_degradations = Counter(
    'agent_degradations_total',
    'Agent sub-scores replaced by the default',
    labelnames=['agent_name', 'reason']  # timeout, internal_error
)

hybrid_search_pass_failures = Counter(
    'hybrid_search_pass_failures_total',
    'Hybrid search passes that timed out or failed',
    labelnames=['search_pass']  # lexical, semantic
)

# Ring metrics
fraud_rings_upserted = Counter(
    'fraud_rings_upserted_total',
    'Fraud ring detections written to the ring store',
    labelnames=['outcome']  # created, updated
)
