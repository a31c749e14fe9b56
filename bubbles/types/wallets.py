from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WalletRecord(BaseModel):
    """A wallet with its tier, as produced by the classification engine."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    address: str = Field(description="Wallet address, lowercased")
    balance: Decimal = Field(default=Decimal(0), description="Balance in whole WCO")
    transaction_count: int = Field(default=0, description="Number of transactions")
    category: str = Field(description="Tier name")
    emoji: str = Field(description="Tier emoji")
    label: Optional[str] = Field(default=None, description="Known-wallet label")
    is_flagship: bool = False
    is_exchange: bool = False
    is_wrapped: bool = False

    @field_validator("address")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.lower()

    def to_payload(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True)
        data["balance"] = float(self.balance)
        return data

