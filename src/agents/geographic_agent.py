"""Geographic Agent - impossible travel and distance from home"""

import asyncio
from datetime import timedelta
from typing import List, Optional

from src.constants import AgentName
from src.models.scored_transaction import AgentResult
from src.models.scoring_config import GeographicConfig
from src.models.transaction import Location, Transaction
from src.tools.geo import clip01, haversine_km
from src.tools.historical_store import HistoricalStore


class GeographicAgent:
    """Scores physically implausible or unusual transaction locations"""

    name = AgentName.GEOGRAPHIC.value

    def __init__(self, store: HistoricalStore, config: Optional[GeographicConfig] = None):
        self.store = store
        self.config = config or GeographicConfig()

    async def analyze(self, transaction: Transaction) -> AgentResult:
        cfg = self.config
        location = transaction.location
        if location is None:
            return AgentResult(agent=self.name, score=0.0, evidence="No location on transaction")

        profile, history = await asyncio.gather(
            self.store.get_user_profile(transaction.user_id),
            self.store.get_user_transactions(
                transaction.user_id,
                since=transaction.timestamp - timedelta(days=cfg.travel_history_days),
                until=transaction.timestamp,
            ),
        )
        located = [txn for txn in history if txn.location is not None]
        reasons = []
        details = {}

        # Travel speed against the immediately preceding located transaction
        travel_term = 0.0
        if located:
            previous = located[0]
            distance = haversine_km(previous.location, location)
            hours = (transaction.timestamp - previous.timestamp).total_seconds() / 3600.0
            details.update({'distance_from_previous_km': round(distance, 1), 'hours_since_previous': round(hours, 3)})

            if distance >= cfg.min_travel_distance_km:
                if hours <= 0:
                    travel_term = 1.0
                    reasons.append(f"{distance:.0f}km from the previous transaction at the same instant")
                else:
                    speed = distance / hours
                    details['implied_speed_kmh'] = round(speed, 1)
                    travel_term = clip01((speed - cfg.max_travel_speed_kmh) / cfg.max_travel_speed_kmh)
                    if travel_term > 0:
                        reasons.append(
                            f"Impossible travel: {distance:.0f}km in {hours * 60:.0f} minutes ({speed:.0f}km/h)"
                        )

        # Distance from home, only for users with no travel history
        home_term = 0.0
        home = profile.home_location if profile is not None else None
        if home is not None and not self._has_travelled(home, located):
            home_distance = haversine_km(home, location)
            details['distance_from_home_km'] = round(home_distance, 1)
            home_term = clip01((home_distance - cfg.home_radius_km) / cfg.home_distance_scale_km)
            if home_term > 0:
                reasons.append(f"{home_distance:.0f}km from home ({location.label()}) with no travel history")

        details.update({'travel_term': round(travel_term, 4), 'home_term': round(home_term, 4)})
        return AgentResult(
            agent=self.name,
            score=clip01(max(travel_term, home_term)),
            evidence="; ".join(reasons) if reasons else "Location consistent with history",
            details=details
        )

    def _has_travelled(self, home: Location, located: List[Transaction]) -> bool:
        return any(
            haversine_km(home, txn.location) > self.config.home_radius_km
            for txn in located
        )
