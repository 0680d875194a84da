import pytest

from src.models.scoring_config import MerchantConfig, OrchestratorConfig, ScoringConfig


@pytest.fixture
def relaxed_config():
    """Scoring config with latency budgets wide enough for slow CI machines"""
    return ScoringConfig(
        orchestrator=OrchestratorConfig(agent_timeout_ms=5000, request_deadline_ms=10000),
        merchant=MerchantConfig(pass_timeout_ms=5000),
    )
