"""Anomaly Agent - velocity spikes, amount jumps and rapid repeats"""

import asyncio
from datetime import timedelta
from typing import Optional

from src.constants import AgentName
from src.models.profiles import UserProfile
from src.models.scored_transaction import AgentResult
from src.models.scoring_config import AnomalyConfig
from src.models.transaction import Transaction
from src.tools.geo import clip01
from src.tools.historical_store import HistoricalStore


class AnomalyAgent:
    """
    Short-term behavioural anomalies.

    Each signal yields a term in [0, 1]; the score is the strongest term, so
    one clear anomaly is never diluted by quiet signals.
    """

    name = AgentName.ANOMALY.value

    def __init__(self, store: HistoricalStore, config: Optional[AnomalyConfig] = None):
        self.store = store
        self.config = config or AnomalyConfig()

    async def analyze(self, transaction: Transaction) -> AgentResult:
        cfg = self.config
        t = transaction.timestamp
        window = timedelta(hours=cfg.velocity_window_hours)

        profile, in_window, recent = await asyncio.gather(
            self.store.get_user_profile(transaction.user_id),
            self.store.get_user_transactions(transaction.user_id, since=t - window, until=t),
            self.store.get_user_transactions(
                transaction.user_id,
                since=t - timedelta(hours=cfg.amount_lookback_hours),
                until=t,
                limit=cfg.recent_limit,
            ),
        )

        # Velocity: the current transaction counts toward the window
        window_count = len(in_window) + 1
        expected = await self._expected_per_window(transaction, profile)
        velocity_ratio = window_count / expected
        velocity_term = clip01((velocity_ratio - 1.0) / (cfg.velocity_saturation_ratio - 1.0))

        # Amount jump against the mean of recent amounts
        jump_ratio, jump_term = 0.0, 0.0
        recent_amounts = [float(txn.amount) for txn in recent]
        if recent_amounts:
            mean_recent = sum(recent_amounts) / len(recent_amounts)
            if mean_recent > 0:
                jump_ratio = float(transaction.amount) / mean_recent
                jump_term = clip01((jump_ratio - 1.0) / (cfg.jump_saturation_ratio - 1.0))

        # Rapid repeat: recent is newest first
        minutes_since_last, repeat_term = None, 0.0
        if recent:
            minutes_since_last = (t - recent[0].timestamp).total_seconds() / 60.0
            if minutes_since_last < cfg.rapid_repeat_minutes:
                repeat_term = cfg.rapid_repeat_score

        score = clip01(max(velocity_term, jump_term, repeat_term))

        reasons = []
        if velocity_term > 0:
            reasons.append(
                f"{window_count} transactions in {cfg.velocity_window_hours:.0f}h "
                f"vs {expected:.1f} expected ({velocity_ratio:.1f}x)"
            )
        if jump_term > 0:
            reasons.append(f"Amount is {jump_ratio:.1f}x the recent average")
        if repeat_term > 0:
            reasons.append(f"Repeat transaction {minutes_since_last:.1f} minutes after the previous one")

        return AgentResult(
            agent=self.name,
            score=score,
            evidence="; ".join(reasons) if reasons else "Activity consistent with recent behaviour",
            details={
                'window_count': window_count,
                'expected_per_window': round(expected, 4),
                'velocity_term': round(velocity_term, 4),
                'jump_ratio': round(jump_ratio, 4),
                'jump_term': round(jump_term, 4),
                'minutes_since_last': None if minutes_since_last is None else round(minutes_since_last, 2),
                'repeat_term': repeat_term,
            }
        )

    async def _expected_per_window(self, transaction: Transaction, profile: Optional[UserProfile]) -> float:
        cfg = self.config
        window_hours = cfg.velocity_window_hours

        if profile is not None and profile.daily_transaction_rate is not None:
            expected = profile.daily_transaction_rate * window_hours / 24.0
            return max(expected, cfg.min_baseline_rate)

        # Historical rate over the baseline period, excluding the current window
        window_start = transaction.timestamp - timedelta(hours=window_hours)
        baseline_hours = cfg.baseline_days * 24.0 - window_hours
        if baseline_hours <= 0:
            return cfg.min_baseline_rate

        history = await self.store.get_user_transactions(
            transaction.user_id,
            since=transaction.timestamp - timedelta(days=cfg.baseline_days),
            until=window_start,
        )
        expected = len(history) / baseline_hours * window_hours
        return max(expected, cfg.min_baseline_rate)
