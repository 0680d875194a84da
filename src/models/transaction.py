"""Transaction data model"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional


class Location(BaseModel):
    """Geographic point with optional place names"""

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lon: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
    city: Optional[str] = Field(None, description="City name")
    country: Optional[str] = Field(None, description="ISO country code")

    class Config:
        frozen = True

    def label(self) -> str:
        if self.city or self.country:
            return ", ".join(part for part in (self.city, self.country) if part)
        return f"({self.lat:.4f}, {self.lon:.4f})"


class Transaction(BaseModel):
    """Transaction entity, read-only input to scoring"""

    transaction_id: str = Field(..., min_length=1, description="Unique transaction ID")
    user_id: str = Field(..., min_length=1, description="Owning user ID")
    amount: Decimal = Field(..., ge=0, description="Transaction amount")
    merchant: str = Field(..., description="Merchant name")
    merchant_category: str = Field(..., description="Merchant category")
    location: Optional[Location] = Field(None, description="Where the transaction happened")
    timestamp: datetime = Field(..., description="Transaction time (UTC)")
    payment_method: str = Field(default="card", description="Payment method")
    device_fingerprint: Optional[str] = Field(None, description="Opaque device identifier")
    description: Optional[str] = Field(None, description="Free-text description")

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "transaction_id": "txn_10045",
                "user_id": "user_001",
                "amount": "3000.00",
                "merchant": "QuickCash Electronics",
                "merchant_category": "electronics",
                "location": {"lat": 40.7128, "lon": -74.0060, "city": "New York", "country": "US"},
                "timestamp": "2025-03-01T14:30:00Z",
                "payment_method": "card",
                "device_fingerprint": "dev_8f2a91",
                "description": "gift cards bulk purchase"
            }
        }

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_validator("device_fingerprint", "description")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value

    def description_text(self) -> str:
        """Text used as the hybrid search query"""
        parts = [self.merchant, self.merchant_category]
        if self.description:
            parts.append(self.description)
        return " ".join(parts)
