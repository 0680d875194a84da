"""Demo data loader - builds an in-memory historical store from CSV files"""

import os
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd

from src.models.profiles import MerchantProfile, UserProfile
from src.models.transaction import Location, Transaction
from src.tools.embedding_provider import EmbeddingProvider, HashingEmbeddingProvider
from src.tools.historical_store import InMemoryHistoricalStore
from src.utils.logging import get_logger

logger = get_logger(__name__)

USERS_FILE = "users.csv"
MERCHANTS_FILE = "merchants.csv"
TRANSACTIONS_FILE = "transactions.csv"
INCOMING_FILE = "incoming_transactions.csv"


def _optional(value: Any) -> Optional[Any]:
    """NaN cells become None"""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    return value


def _location(row: pd.Series, prefix: str = "") -> Optional[Location]:
    lat, lon = _optional(row.get(f"{prefix}lat")), _optional(row.get(f"{prefix}lon"))
    if lat is None or lon is None:
        return None
    return Location(
        lat=float(lat),
        lon=float(lon),
        city=_optional(row.get(f"{prefix}city")),
        country=_optional(row.get(f"{prefix}country")),
    )


class DemoDataLoader:
    """
    Loads demo CSV files into domain models.

    Mimics the read side of the production historical store so the same
    orchestrator code runs against local data.
    """

    def __init__(self, data_dir: Optional[str] = None):
        """
        Initialize demo data loader

        Args:
            data_dir: Directory holding the CSV files (defaults to demo_data/)
        """
        if data_dir is None:
            data_dir = os.getenv("DEMO_DATA_DIR", "demo_data")

        self.data_dir = Path(data_dir)
        if not self.data_dir.exists():
            raise FileNotFoundError(f"Demo data directory not found: {data_dir}")

        logger.info(f"Demo data loader initialized with data from: {self.data_dir}")

    def _load_csv(self, filename: str) -> pd.DataFrame:
        filepath = self.data_dir / filename
        if not filepath.exists():
            logger.warning(f"File not found: {filepath}")
            return pd.DataFrame()

        df = pd.read_csv(filepath, dtype=str)
        logger.info(f"Loaded {len(df)} records from {filename}")
        return df

    def users(self) -> List[UserProfile]:
        profiles = []
        for _, row in self._load_csv(USERS_FILE).iterrows():
            categories = _optional(row.get('common_categories'))
            rate = _optional(row.get('daily_transaction_rate'))
            profiles.append(UserProfile(
                user_id=row['user_id'],
                average_amount=float(row['average_amount']),
                common_categories=categories.split(";") if categories else [],
                home_location=_location(row, prefix="home_"),
                daily_transaction_rate=float(rate) if rate is not None else None,
            ))
        return profiles

    def merchants(self) -> List[MerchantProfile]:
        return [
            MerchantProfile(
                name=row['name'],
                category=_optional(row.get('category')) or "",
                description=_optional(row.get('description')) or "",
                fraud_count=int(row['fraud_count']),
                total_count=int(row['total_count']),
            )
            for _, row in self._load_csv(MERCHANTS_FILE).iterrows()
        ]

    def _transactions(self, filename: str) -> List[Transaction]:
        return [
            Transaction(
                transaction_id=row['transaction_id'],
                user_id=row['user_id'],
                amount=Decimal(row['amount']),
                merchant=row['merchant'],
                merchant_category=row['merchant_category'],
                location=_location(row),
                timestamp=pd.Timestamp(row['timestamp']).to_pydatetime(),
                payment_method=_optional(row.get('payment_method')) or "card",
                device_fingerprint=_optional(row.get('device_fingerprint')),
                description=_optional(row.get('description')),
            )
            for _, row in self._load_csv(filename).iterrows()
        ]

    def historical_transactions(self) -> List[Transaction]:
        return self._transactions(TRANSACTIONS_FILE)

    def incoming_transactions(self) -> List[Transaction]:
        return self._transactions(INCOMING_FILE)


def load_demo_store(
    data_dir: Optional[str] = None, embedding_provider: Optional[EmbeddingProvider] = None
) -> InMemoryHistoricalStore:
    """
    Convenience function to build the demo historical store

    Args:
        data_dir: Optional path to the demo data directory
        embedding_provider: Provider used to embed merchant descriptions

    Returns:
        InMemoryHistoricalStore over the demo users, merchants and history
    """
    loader = DemoDataLoader(data_dir)
    return InMemoryHistoricalStore(
        transactions=loader.historical_transactions(),
        users=loader.users(),
        merchants=loader.merchants(),
        embedding_provider=embedding_provider or HashingEmbeddingProvider(),
    )
