"""Fraud ring data model"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List

from src.constants import RingStatus


def ring_id_for(identifier_type: str, shared_identifier: str) -> str:
    """Rings are keyed by the identifier they share"""
    return f"{identifier_type}:{shared_identifier}"


class FraudRing(BaseModel):
    """Materialized summary of an identifier-sharing cluster"""

    ring_id: str = Field(..., description="Deterministic key derived from the shared identifier")
    identifier_type: str = Field(default="device_fingerprint")
    shared_identifier: str = Field(..., description="The identifier members share")
    merchant: str = Field(..., description="Merchant of the transaction that triggered detection")
    member_user_ids: List[str] = Field(default_factory=list)
    transaction_amounts: Dict[str, Decimal] = Field(
        default_factory=dict, description="Implicated transaction ID -> amount"
    )
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    status: RingStatus = Field(default=RingStatus.ACTIVE)
    detected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        json_schema_extra = {
            "example": {
                "ring_id": "device_fingerprint:dev_8f2a91",
                "identifier_type": "device_fingerprint",
                "shared_identifier": "dev_8f2a91",
                "merchant": "QuickCash Electronics",
                "member_user_ids": ["user_101", "user_102", "user_103"],
                "transaction_amounts": {"txn_1": "1500.00", "txn_2": "1500.00", "txn_3": "1500.00"},
                "total_amount": "4500.00",
                "status": "ACTIVE"
            }
        }

    @model_validator(mode="after")
    def compute_total(self) -> "FraudRing":
        if self.transaction_amounts:
            self.total_amount = sum(self.transaction_amounts.values(), Decimal("0"))
        return self

    @property
    def member_transaction_ids(self) -> List[str]:
        return sorted(self.transaction_amounts)

    @property
    def victim_count(self) -> int:
        return len(self.member_user_ids)

    @property
    def is_active(self) -> bool:
        return self.status == RingStatus.ACTIVE


def merge_rings(existing: "FraudRing | None", incoming: FraudRing) -> FraudRing:
    """
    Fold a fresh detection into the stored ring.

    Members are unioned and an amount is counted once per transaction, so
    repeated detection of the same cluster never inflates the record.
    detected_at, merchant and status stay as first recorded.
    """
    if existing is None:
        return incoming

    amounts = dict(incoming.transaction_amounts)
    amounts.update(existing.transaction_amounts)
    return existing.model_copy(update={
        'member_user_ids': sorted(set(existing.member_user_ids) | set(incoming.member_user_ids)),
        'transaction_amounts': amounts,
        'total_amount': sum(amounts.values(), Decimal("0")),
        'updated_at': max(existing.updated_at, incoming.updated_at),
    })
