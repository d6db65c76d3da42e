"""
Credits tables

``credits`` holds the running balance, ``credit_ledger`` the append-only list of
signed deltas. The balance must always equal the sum of the ledger amounts for
the same anon id; the storage adapter writes both inside one transaction.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from profileapi.models.base import Base
from profileapi.utils.timezone_utils import utc_now

# SQLite only auto-increments INTEGER primary keys
SequenceType = BigInteger().with_variant(Integer(), "sqlite")


class Credits(Base):
    __tablename__ = "credits"

    anon_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.anon_id"), primary_key=True
    )
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class CreditLedger(Base):
    """
    Credit ledger - one immutable row per balance change

    - seq orders rows that share a timestamp
    - id is the public UUID of the entry
    """

    __tablename__ = "credit_ledger"
    __table_args__ = (
        Index("idx_credit_ledger_anon_created", "anon_id", "created_at"),
    )

    seq: Mapped[int] = mapped_column(SequenceType, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    anon_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.anon_id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class BonusClaim(Base):
    """Last daily bonus claim per anon id; not part of the ledger"""

    __tablename__ = "bonus_claims"

    anon_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.anon_id"), primary_key=True
    )
    last_claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
