"""User and merchant profile data models

Both are maintained by external batch processes; scoring only reads them.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from src.models.transaction import Location


class UserProfile(BaseModel):
    """Statistical profile of a user's spending"""

    user_id: str = Field(..., description="User ID")
    average_amount: float = Field(default=0.0, ge=0, description="Running average transaction amount")
    common_categories: List[str] = Field(default_factory=list, description="Usual merchant categories")
    home_location: Optional[Location] = Field(None, description="Home location")
    daily_transaction_rate: Optional[float] = Field(None, ge=0, description="Typical transactions per day")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "user_001",
                "average_amount": 85.50,
                "common_categories": ["groceries", "restaurants", "utilities"],
                "home_location": {"lat": 40.7128, "lon": -74.0060, "city": "New York", "country": "US"},
                "daily_transaction_rate": 2.0
            }
        }


class MerchantProfile(BaseModel):
    """Merchant reputation and its description corpus summary"""

    name: str = Field(..., description="Merchant name (unique key)")
    category: str = Field(default="", description="Merchant category")
    description: str = Field(default="", description="Merchant description on file")
    fraud_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)
    embedding: Optional[List[float]] = Field(None, description="Embedding of the description corpus")

    @property
    def fraud_rate(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return min(1.0, self.fraud_count / self.total_count)

    def search_text(self) -> str:
        return " ".join(part for part in (self.name, self.category, self.description) if part)
