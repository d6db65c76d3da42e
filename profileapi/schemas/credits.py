from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from profileapi.utils.timezone_utils import isoformat_utc


class LedgerKind(str, Enum):
    """Reason category of a ledger entry"""

    INITIAL = "initial"
    DAILY_BONUS = "daily_bonus"
    SPEND = "spend"
    EARN = "earn"
    ADJUST = "adjust"


class CreditsAccount(BaseModel):
    """Current balance of one anonymous id"""

    anon_id: str
    balance: int
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LedgerEntryCreate(BaseModel):
    """Ledger entry before the store assigns id and timestamp"""

    anon_id: str
    amount: int
    kind: LedgerKind
    reason: Optional[str] = None


class LedgerEntry(LedgerEntryCreate):
    """Immutable ledger record"""

    id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LedgerEntryResponse(BaseModel):
    id: str = Field(..., description="Ledger entry id (UUID)")
    amount: int = Field(..., description="Signed credit delta")
    type: LedgerKind = Field(..., description="Entry kind")
    reason: Optional[str] = Field(None, description="Free text reason")
    ts: str = Field(..., description="ISO8601 creation time")

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "LedgerEntryResponse":
        return cls(
            id=entry.id,
            amount=entry.amount,
            type=entry.kind,
            reason=entry.reason,
            ts=isoformat_utc(entry.created_at),
        )


class CreditsResponse(BaseModel):
    """Balance plus the most recent ledger entries, newest first"""

    balance: int = Field(..., description="Current balance")
    ledger: List[LedgerEntryResponse] = Field(..., description="Recent entries")


class CreditAdjustRequest(BaseModel):
    """Administrative delta (positive or negative)"""

    amount: StrictInt = Field(..., description="Signed delta, must not be zero")
    reason: StrictStr = Field(..., min_length=1, max_length=255, description="Adjustment reason")


class CreditSpendRequest(BaseModel):
    """Spend request; the balance may not go below zero"""

    amount: StrictInt = Field(..., gt=0, description="Credits to spend")
    reason: StrictStr = Field(..., min_length=1, max_length=255, description="What the credits pay for")


class CreditsIntegrityResponse(BaseModel):
    """Balance versus ledger sum for one identity"""

    status: str = Field(..., description="OK or MISMATCH")
    anon_id: str
    balance: int
    ledger_total: int
    entry_count: int
    verified_at: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
