"""Historical store interface and an in-memory implementation.

The scoring core only reads from the store: keyed lookups, lexical relevance
search, vector similarity search and grouped distinct counts. Production
deployments back this with a database offering full-text and vector indexes;
the in-memory implementation serves local development, the demo and tests.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

import numpy as np
import pandas as pd
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import linear_kernel

from src.models.profiles import MerchantProfile, UserProfile
from src.models.transaction import Location, Transaction
from src.tools.embedding_provider import EmbeddingProvider
from src.tools.geo import location_cell
from src.utils.errors import EmbeddingUnavailable, StoreUnavailable
from src.utils.logging import get_logger

logger = get_logger(__name__)

SearchHits = List[Tuple[MerchantProfile, float]]

GROUP_FIELDS = {'user_id', 'merchant', 'device_fingerprint', 'location_cell'}
DISTINCT_FIELDS = {'user_id', 'merchant', 'device_fingerprint', 'transaction_id'}
TRANSACTION_COLUMNS = [
    'transaction_id', 'user_id', 'amount', 'merchant', 'merchant_category',
    'timestamp', 'device_fingerprint', 'location_cell'
]


class HistoricalStore(Protocol):
    """Read-only view of historical transactions and profiles"""

    async def health_check(self) -> bool:
        ...

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    async def get_merchant_profile(self, name: str) -> Optional[MerchantProfile]:
        ...

    async def get_user_transactions(
        self, user_id: str, since: datetime, until: datetime, limit: Optional[int] = None
    ) -> List[Transaction]:
        ...

    async def lexical_search(
        self, query: str, filters: Optional[Dict[str, Any]] = None, limit: int = 10
    ) -> SearchHits:
        ...

    async def vector_search(
        self, vector: List[float], k: int = 10, filters: Optional[Dict[str, Any]] = None
    ) -> SearchHits:
        ...

    async def count_distinct(
        self, group_field: str, group_value: Any, distinct_field: str,
        since: datetime, until: datetime, exclude: Optional[str] = None
    ) -> int:
        ...

    async def get_group_transactions(
        self, group_field: str, group_value: Any, since: datetime, until: datetime
    ) -> List[Transaction]:
        ...


class InMemoryHistoricalStore:
    """
    Historical store held in pandas DataFrames.

    - Lexical search: TF-IDF cosine relevance over merchant descriptions
    - Vector search: cosine similarity over merchant embeddings
    - Grouped queries: boolean masks over the transaction frame

    Merchants loaded without an embedding are embedded with the supplied
    provider so both search passes cover the same documents.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        users: Iterable[UserProfile] = (),
        merchants: Iterable[MerchantProfile] = (),
        embedding_provider: Optional[EmbeddingProvider] = None,
        location_precision: int = 2,
    ):
        self.location_precision = location_precision
        self._available = True

        self._by_id: Dict[str, Transaction] = {}
        for txn in transactions:
            self._by_id[txn.transaction_id] = txn
        self._transactions = self._build_transaction_frame(self._by_id.values())

        self._users = {user.user_id: user for user in users}

        self._merchants = [
            self._with_embedding(merchant, embedding_provider) for merchant in merchants
        ]
        self._merchant_by_name = {merchant.name: merchant for merchant in self._merchants}
        self._build_lexical_index()
        self._build_vector_index()

        logger.info(
            "In-memory historical store ready",
            transactions=len(self._by_id),
            users=len(self._users),
            merchants=len(self._merchants)
        )

    # ------------------------------------------------------------------ #
    #  Construction                                                       #
    # ------------------------------------------------------------------ #

    def _build_transaction_frame(self, transactions: Iterable[Transaction]) -> pd.DataFrame:
        records = []
        for txn in transactions:
            records.append({
                'transaction_id': txn.transaction_id,
                'user_id': txn.user_id,
                'amount': float(txn.amount),
                'merchant': txn.merchant,
                'merchant_category': txn.merchant_category,
                'timestamp': txn.timestamp,
                'device_fingerprint': txn.device_fingerprint,
                'location_cell': self._cell(txn.location),
            })

        df = pd.DataFrame(records, columns=TRANSACTION_COLUMNS)
        df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True)
        return df.sort_values(
            ['timestamp', 'transaction_id'], ascending=[False, True], kind='mergesort'
        ).reset_index(drop=True)

    def _cell(self, location: Optional[Location]) -> Optional[str]:
        if location is None:
            return None
        return location_cell(location.lat, location.lon, self.location_precision)

    @staticmethod
    def _with_embedding(
        merchant: MerchantProfile, embedding_provider: Optional[EmbeddingProvider]
    ) -> MerchantProfile:
        if merchant.embedding is not None or embedding_provider is None:
            return merchant
        try:
            vector = embedding_provider.embed(merchant.search_text())
        except EmbeddingUnavailable as e:
            logger.warning(f"Could not embed merchant {merchant.name}: {e}")
            return merchant
        return merchant.model_copy(update={'embedding': list(vector)})

    def _build_lexical_index(self) -> None:
        self._tfidf: Optional[TfidfVectorizer] = None
        self._tfidf_matrix = None
        if not self._merchants:
            return

        vectorizer = TfidfVectorizer(stop_words='english', lowercase=True)
        try:
            self._tfidf_matrix = vectorizer.fit_transform(
                [merchant.search_text() for merchant in self._merchants]
            )
            self._tfidf = vectorizer
        except ValueError as e:
            # Every document was empty or stop words only
            logger.warning(f"Lexical index not built: {e}")

    def _build_vector_index(self) -> None:
        self._vector_rows: List[int] = []
        self._vector_matrix: Optional[np.ndarray] = None

        vectors = []
        for idx, merchant in enumerate(self._merchants):
            if merchant.embedding:
                vectors.append(np.asarray(merchant.embedding, dtype=float))
                self._vector_rows.append(idx)

        if not vectors:
            return
        dimensions = {vector.shape[0] for vector in vectors}
        if len(dimensions) > 1:
            raise ValueError(f"Merchant embeddings have mixed dimensions: {sorted(dimensions)}")

        matrix = np.vstack(vectors)
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        self._vector_matrix = matrix / norms

    # ------------------------------------------------------------------ #
    #  Availability                                                       #
    # ------------------------------------------------------------------ #

    def set_available(self, available: bool) -> None:
        """Simulate losing (or regaining) the connection to the store"""
        self._available = available

    def _ensure_available(self) -> None:
        if not self._available:
            raise StoreUnavailable("Historical store is unreachable")

    async def health_check(self) -> bool:
        return self._available

    # ------------------------------------------------------------------ #
    #  Keyed lookups                                                      #
    # ------------------------------------------------------------------ #

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        self._ensure_available()
        return self._users.get(user_id)

    async def get_merchant_profile(self, name: str) -> Optional[MerchantProfile]:
        self._ensure_available()
        return self._merchant_by_name.get(name)

    async def get_user_transactions(
        self, user_id: str, since: datetime, until: datetime, limit: Optional[int] = None
    ) -> List[Transaction]:
        """User's transactions in [since, until), newest first"""
        self._ensure_available()
        df = self._transactions
        mask = (df['user_id'] == user_id) & self._window(since, until)
        ids = df.loc[mask, 'transaction_id']
        if limit is not None:
            ids = ids.head(limit)
        return [self._by_id[tid] for tid in ids]

    # ------------------------------------------------------------------ #
    #  Search                                                             #
    # ------------------------------------------------------------------ #

    def _merchant_mask(self, filters: Optional[Dict[str, Any]]) -> np.ndarray:
        mask = np.ones(len(self._merchants), dtype=bool)
        for key, value in (filters or {}).items():
            if key == 'min_fraud_rate':
                mask &= np.array([m.fraud_rate >= value for m in self._merchants], dtype=bool)
            elif key == 'category':
                mask &= np.array([m.category == value for m in self._merchants], dtype=bool)
            else:
                raise ValueError(f"Unsupported search filter: {key}")
        return mask

    @staticmethod
    def _top_hits(candidates: List[Tuple[int, float]], limit: int) -> List[Tuple[int, float]]:
        # Highest score first, ties broken by load order
        return sorted(candidates, key=lambda item: (-item[1], item[0]))[:limit]

    async def lexical_search(
        self, query: str, filters: Optional[Dict[str, Any]] = None, limit: int = 10
    ) -> SearchHits:
        self._ensure_available()
        if self._tfidf is None or not query.strip():
            return []

        scores = linear_kernel(self._tfidf.transform([query]), self._tfidf_matrix).ravel()
        mask = self._merchant_mask(filters)
        candidates = [
            (idx, float(min(1.0, score)))
            for idx, score in enumerate(scores)
            if mask[idx] and score > 0
        ]
        return [(self._merchants[idx], score) for idx, score in self._top_hits(candidates, limit)]

    async def vector_search(
        self, vector: List[float], k: int = 10, filters: Optional[Dict[str, Any]] = None
    ) -> SearchHits:
        self._ensure_available()
        if self._vector_matrix is None:
            return []

        query = np.asarray(vector, dtype=float)
        if query.shape[0] != self._vector_matrix.shape[1]:
            raise ValueError(
                f"Query vector has dimension {query.shape[0]}, index has {self._vector_matrix.shape[1]}"
            )
        norm = np.linalg.norm(query)
        if norm == 0:
            return []

        similarities = np.clip(self._vector_matrix @ (query / norm), 0.0, 1.0)
        mask = self._merchant_mask(filters)
        candidates = [
            (merchant_idx, float(similarity))
            for merchant_idx, similarity in zip(self._vector_rows, similarities)
            if mask[merchant_idx]
        ]
        return [(self._merchants[idx], score) for idx, score in self._top_hits(candidates, k)]

    # ------------------------------------------------------------------ #
    #  Grouped queries                                                    #
    # ------------------------------------------------------------------ #

    def _window(self, since: datetime, until: datetime) -> pd.Series:
        ts = self._transactions['timestamp']
        return (ts >= pd.Timestamp(since)) & (ts < pd.Timestamp(until))

    def _group_mask(self, group_field: str, group_value: Any, since: datetime, until: datetime) -> pd.Series:
        if group_field not in GROUP_FIELDS:
            raise ValueError(f"Unsupported group field: {group_field}")
        if group_field == 'location_cell' and isinstance(group_value, Location):
            group_value = self._cell(group_value)
        return (self._transactions[group_field] == group_value) & self._window(since, until)

    async def count_distinct(
        self, group_field: str, group_value: Any, distinct_field: str,
        since: datetime, until: datetime, exclude: Optional[str] = None
    ) -> int:
        """Distinct values of distinct_field among transactions sharing group_value"""
        self._ensure_available()
        if distinct_field not in DISTINCT_FIELDS:
            raise ValueError(f"Unsupported distinct field: {distinct_field}")

        values = self._transactions.loc[
            self._group_mask(group_field, group_value, since, until), distinct_field
        ].dropna()
        if exclude is not None:
            values = values[values != exclude]
        return int(values.nunique())

    async def get_group_transactions(
        self, group_field: str, group_value: Any, since: datetime, until: datetime
    ) -> List[Transaction]:
        self._ensure_available()
        ids = self._transactions.loc[
            self._group_mask(group_field, group_value, since, until), 'transaction_id'
        ]
        return [self._by_id[tid] for tid in ids]
