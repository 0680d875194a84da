"""Builders and doubles shared by the scoring tests"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from src.models.profiles import MerchantProfile, UserProfile
from src.models.transaction import Location, Transaction
from src.tools.historical_store import InMemoryHistoricalStore
from src.utils.errors import EmbeddingUnavailable, StoreUnavailable

BASE_TIME = datetime(2025, 3, 1, 14, 30, tzinfo=timezone.utc)

NYC = Location(lat=40.7128, lon=-74.0060, city="New York", country="US")
BOSTON = Location(lat=42.3601, lon=-71.0589, city="Boston", country="US")
LA = Location(lat=34.0522, lon=-118.2437, city="Los Angeles", country="US")
LONDON = Location(lat=51.5074, lon=-0.1278, city="London", country="GB")
PARIS = Location(lat=48.8566, lon=2.3522, city="Paris", country="FR")
MIAMI = Location(lat=25.7617, lon=-80.1918, city="Miami", country="US")


def make_txn(
    transaction_id: str,
    user_id: str = "user_001",
    amount: str = "50.00",
    merchant: str = "Corner Grocery",
    category: str = "groceries",
    location: Optional[Location] = NYC,
    minutes_ago: float = 0,
    device: Optional[str] = None,
    description: Optional[str] = None,
) -> Transaction:
    return Transaction(
        transaction_id=transaction_id,
        user_id=user_id,
        amount=Decimal(amount),
        merchant=merchant,
        merchant_category=category,
        location=location,
        timestamp=BASE_TIME - timedelta(minutes=minutes_ago),
        device_fingerprint=device,
        description=description,
    )


def make_user(
    user_id: str = "user_001",
    average_amount: float = 100.0,
    categories=("groceries", "restaurants"),
    home: Optional[Location] = NYC,
    daily_rate: Optional[float] = None,
) -> UserProfile:
    return UserProfile(
        user_id=user_id,
        average_amount=average_amount,
        common_categories=list(categories),
        home_location=home,
        daily_transaction_rate=daily_rate,
    )


def build_store(transactions=(), users=(), merchants=(), embedding_provider=None) -> InMemoryHistoricalStore:
    return InMemoryHistoricalStore(
        transactions=transactions,
        users=users,
        merchants=merchants,
        embedding_provider=embedding_provider,
    )


def run(coro):
    return asyncio.run(coro)


class StaticEmbeddingProvider:
    """Returns a fixed vector per text, a default vector otherwise"""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default=(1.0, 0.0, 0.0)):
        self.vectors = vectors or {}
        self.default = list(default)

    def embed(self, text: str) -> List[float]:
        return list(self.vectors.get(text, self.default))


class FailingEmbeddingProvider:
    def embed(self, text: str) -> List[float]:
        raise EmbeddingUnavailable("embedding service down")


class StubSearchStore:
    """Store double returning canned search hits"""

    def __init__(self, lexical_hits=(), vector_hits=(), lexical_delay: float = 0.0,
                 unavailable: bool = False, merchant: Optional[MerchantProfile] = None):
        self.lexical_hits = list(lexical_hits)
        self.vector_hits = list(vector_hits)
        self.lexical_delay = lexical_delay
        self.unavailable = unavailable
        self.merchant = merchant
        self.lexical_queries = []

    async def lexical_search(self, query, filters=None, limit=10):
        if self.unavailable:
            raise StoreUnavailable("store down")
        self.lexical_queries.append(query)
        if self.lexical_delay:
            await asyncio.sleep(self.lexical_delay)
        return self.lexical_hits

    async def vector_search(self, vector, k=10, filters=None):
        if self.unavailable:
            raise StoreUnavailable("store down")
        return self.vector_hits

    async def get_merchant_profile(self, name):
        return self.merchant

