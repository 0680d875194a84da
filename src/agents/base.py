"""Common shape of the signal agents"""

from typing import Protocol

from src.models.scored_transaction import AgentResult
from src.models.transaction import Transaction


class SignalAgent(Protocol):
    """
    One independent fraud signal.

    Agents read the historical store, never mutate the transaction, and
    return a sub-score in [0, 1] with the evidence behind it. They may raise;
    the orchestrator turns failures into degraded results.
    """

    name: str

    async def analyze(self, transaction: Transaction) -> AgentResult:
        ...
