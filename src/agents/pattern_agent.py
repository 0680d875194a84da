"""Pattern Agent - deviation from the user's spending baseline"""

from datetime import timedelta
from typing import List, Optional, Tuple

from src.constants import AgentName
from src.models.profiles import UserProfile
from src.models.scored_transaction import AgentResult
from src.models.scoring_config import PatternConfig
from src.models.transaction import Transaction
from src.tools.geo import clip01
from src.tools.historical_store import HistoricalStore
from src.utils.logging import get_logger

logger = get_logger(__name__)


class PatternAgent:
    """Scores how far an amount and category stray from the user's habits"""

    name = AgentName.PATTERN.value

    def __init__(self, store: HistoricalStore, config: Optional[PatternConfig] = None):
        self.store = store
        self.config = config or PatternConfig()

    async def analyze(self, transaction: Transaction) -> AgentResult:
        """
        Score = clip(deviation / deviation_scale) + category penalty, clipped.

        deviation = |amount - average| / average, where the baseline comes from
        the user profile or, failing that, the user's recent history.
        """
        cfg = self.config
        profile = await self.store.get_user_profile(transaction.user_id)
        baseline = await self._baseline(transaction, profile)

        if baseline is None:
            return AgentResult(
                agent=self.name,
                score=0.0,
                evidence="No spending baseline for user",
                details={'baseline_source': None}
            )

        average, categories, source = baseline
        amount = float(transaction.amount)
        deviation = abs(amount - average) / average
        amount_term = clip01(deviation / cfg.deviation_scale)

        unfamiliar = bool(categories) and transaction.merchant_category not in categories
        score = clip01(amount_term + (cfg.category_penalty if unfamiliar else 0.0))

        evidence = f"Amount ${amount:.2f} deviates {deviation:.1f}x from average ${average:.2f}"
        if unfamiliar:
            evidence += f"; unfamiliar category '{transaction.merchant_category}'"

        return AgentResult(
            agent=self.name,
            score=score,
            evidence=evidence,
            details={
                'average_amount': round(average, 2),
                'deviation': round(deviation, 4),
                'amount_term': round(amount_term, 4),
                'unfamiliar_category': unfamiliar,
                'baseline_source': source,
            }
        )

    async def _baseline(
        self, transaction: Transaction, profile: Optional[UserProfile]
    ) -> Optional[Tuple[float, List[str], str]]:
        if profile is not None and profile.average_amount > 0:
            return profile.average_amount, list(profile.common_categories), 'profile'

        since = transaction.timestamp - timedelta(days=self.config.history_days)
        history = await self.store.get_user_transactions(
            transaction.user_id, since=since, until=transaction.timestamp
        )
        amounts = [float(txn.amount) for txn in history]
        if not amounts or sum(amounts) <= 0:
            return None

        logger.debug("Pattern baseline derived from history", user_id=transaction.user_id, count=len(amounts))
        categories = sorted({txn.merchant_category for txn in history})
        return sum(amounts) / len(amounts), categories, 'history'
