"""
Storage adapter contract

Every backend (in-process or relational) implements this interface. Services
never touch a backend directly; the container picks one implementation at
startup from ``STORAGE_BACKEND``.

Balance invariant: for every anon id with a credits row,
``balance == sum(ledger.amount)``. Callers keep it by changing the balance and
appending the matching ledger entry inside one ``transaction()``.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import ContextManager, List, Mapping, Optional, Tuple

from profileapi.schemas.credits import CreditsAccount, LedgerEntry, LedgerEntryCreate
from profileapi.schemas.profile import UserProfile


class StorageAdapter(ABC):
    """Backend-agnostic persistence for users, credits, ledger and bonus claims"""

    name: str = "abstract"

    # Transactions

    @abstractmethod
    def transaction(self) -> ContextManager[None]:
        """Group calls so they commit or roll back together.

        Nested use joins the outer transaction.
        """

    # Users

    @abstractmethod
    def get_user(self, anon_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    def create_user(self, anon_id: str) -> UserProfile:
        """Raises ConflictError if a profile already exists."""

    @abstractmethod
    def update_user(self, anon_id: str, updates: Mapping[str, Optional[str]]) -> UserProfile:
        """Apply ``updates`` (keys: display_name, avatar_url); missing keys stay unchanged.

        Raises NotFoundError if the profile is absent.
        """

    # Credits

    @abstractmethod
    def get_credits(self, anon_id: str, for_update: bool = False) -> Optional[CreditsAccount]:
        """``for_update`` locks the account until the surrounding transaction ends."""

    @abstractmethod
    def create_credits(self, anon_id: str, initial_balance: int = 0) -> CreditsAccount:
        """Raises ConflictError if an account already exists."""

    @abstractmethod
    def set_credits_balance(self, anon_id: str, new_balance: int) -> CreditsAccount:
        """Raises NotFoundError if the account is absent."""

    # Ledger

    @abstractmethod
    def list_ledger(self, anon_id: str, limit: int = 50) -> List[LedgerEntry]:
        """Newest first."""

    @abstractmethod
    def append_ledger_entry(self, entry: LedgerEntryCreate) -> LedgerEntry:
        """Store an entry; the adapter assigns id and created_at."""

    @abstractmethod
    def sum_ledger(self, anon_id: str) -> Tuple[int, int]:
        """Return (sum of amounts, number of entries)."""

    # Daily bonus

    @abstractmethod
    def get_last_bonus_claim(self, anon_id: str, for_update: bool = False) -> Optional[datetime]:
        """``for_update`` locks the claim row, when one exists, until the transaction ends."""

    @abstractmethod
    def set_last_bonus_claim(self, anon_id: str, claimed_at: datetime) -> None:
        ...

    # Health

    @abstractmethod
    def health_check(self) -> bool:
        ...
