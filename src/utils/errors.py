"""Custom exceptions for the fraud scoring system"""


class FraudScoringError(Exception):
    """Base exception for fraud scoring errors"""
    pass


class ConfigurationError(FraudScoringError):
    """Configuration loading errors"""
    pass


class StoreUnavailable(FraudScoringError):
    """Historical store cannot be reached; fatal for the request"""
    pass


class EmbeddingUnavailable(FraudScoringError):
    """Embedding provider failed; recovered by zeroing the semantic term"""
    pass


class RingStoreError(FraudScoringError):
    """Fraud ring persistence errors"""
    pass


class AgentExecutionError(FraudScoringError):
    """Agent execution errors"""

    def __init__(self, agent_name: str, message: str):
        super().__init__(f"{agent_name}: {message}")
        self.agent_name = agent_name


class AgentTimeout(AgentExecutionError):
    """Agent exceeded its latency budget"""
    pass


class AgentInternalError(AgentExecutionError):
    """Agent raised on malformed input or context"""
    pass


class PartialAgentFailure(FraudScoringError):
    """Too many agents degraded for the aggregate to rest on real signals"""

    def __init__(self, result):
        degraded = ", ".join(result.degraded_agents)
        super().__init__(
            f"Transaction {result.transaction.transaction_id} scored with "
            f"{len(result.degraded_agents)} degraded agents: {degraded}"
        )
        self.result = result
