"""
In-process storage adapter

Map-backed store for development and tests. Nothing survives a restart and
nothing is shared between processes. A reentrant lock serializes access; an
outermost ``transaction()`` snapshots the maps and restores them if the block
raises, so partial writes never leak.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from profileapi.core.exceptions import ConflictError, NotFoundError
from profileapi.repositories.base import StorageAdapter
from profileapi.schemas.credits import CreditsAccount, LedgerEntry, LedgerEntryCreate
from profileapi.schemas.profile import UserProfile
from profileapi.utils.timezone_utils import Clock, utc_now

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("display_name", "avatar_url")


class MemoryStorageAdapter(StorageAdapter):
    name = "memory"

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self._lock = threading.RLock()
        self._depth = 0
        self._users: Dict[str, UserProfile] = {}
        self._credits: Dict[str, CreditsAccount] = {}
        self._ledger: List[LedgerEntry] = []
        self._bonus_claims: Dict[str, datetime] = {}

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            outermost = self._depth == 0
            snapshot = self._snapshot() if outermost else None
            self._depth += 1
            try:
                yield
            except BaseException:
                if snapshot is not None:
                    self._restore(snapshot)
                    logger.debug("Memory transaction rolled back")
                raise
            finally:
                self._depth -= 1

    def _snapshot(self):
        # Records are immutable pydantic models replaced on write, so shallow
        # copies of the containers are enough.
        return (
            dict(self._users),
            dict(self._credits),
            list(self._ledger),
            dict(self._bonus_claims),
        )

    def _restore(self, snapshot) -> None:
        users, credits, ledger, bonus_claims = snapshot
        self._users = users
        self._credits = credits
        self._ledger = ledger
        self._bonus_claims = bonus_claims

    # Users

    def get_user(self, anon_id: str) -> Optional[UserProfile]:
        with self._lock:
            return self._users.get(anon_id)

    def create_user(self, anon_id: str) -> UserProfile:
        with self._lock:
            if anon_id in self._users:
                raise ConflictError(f"User already exists: {anon_id}")
            now = self.clock()
            user = UserProfile(anon_id=anon_id, created_at=now, updated_at=now)
            self._users[anon_id] = user
            return user

    def update_user(self, anon_id: str, updates: Mapping[str, Optional[str]]) -> UserProfile:
        with self._lock:
            user = self._users.get(anon_id)
            if user is None:
                raise NotFoundError(f"User not found: {anon_id}")
            changes = {key: value for key, value in updates.items() if key in PROFILE_FIELDS}
            changes["updated_at"] = self.clock()
            updated = user.model_copy(update=changes)
            self._users[anon_id] = updated
            return updated

    # Credits

    def get_credits(self, anon_id: str, for_update: bool = False) -> Optional[CreditsAccount]:
        with self._lock:
            return self._credits.get(anon_id)

    def create_credits(self, anon_id: str, initial_balance: int = 0) -> CreditsAccount:
        with self._lock:
            if anon_id in self._credits:
                raise ConflictError(f"Credits already exist: {anon_id}")
            account = CreditsAccount(
                anon_id=anon_id, balance=initial_balance, updated_at=self.clock()
            )
            self._credits[anon_id] = account
            return account

    def set_credits_balance(self, anon_id: str, new_balance: int) -> CreditsAccount:
        with self._lock:
            account = self._credits.get(anon_id)
            if account is None:
                raise NotFoundError(f"Credits not found: {anon_id}")
            updated = account.model_copy(
                update={"balance": new_balance, "updated_at": self.clock()}
            )
            self._credits[anon_id] = updated
            return updated

    # Ledger

    def list_ledger(self, anon_id: str, limit: int = 50) -> List[LedgerEntry]:
        with self._lock:
            # Walking the append order backwards keeps insertion order as the
            # tie breaker for equal timestamps.
            entries = [entry for entry in reversed(self._ledger) if entry.anon_id == anon_id]
        entries.sort(key=lambda entry: entry.created_at, reverse=True)
        return entries[:limit]

    def append_ledger_entry(self, entry: LedgerEntryCreate) -> LedgerEntry:
        with self._lock:
            stored = LedgerEntry(
                **entry.model_dump(),
                id=str(uuid.uuid4()),
                created_at=self.clock(),
            )
            self._ledger.append(stored)
            return stored

    def sum_ledger(self, anon_id: str) -> Tuple[int, int]:
        with self._lock:
            amounts = [entry.amount for entry in self._ledger if entry.anon_id == anon_id]
        return sum(amounts), len(amounts)

    # Daily bonus

    def get_last_bonus_claim(self, anon_id: str, for_update: bool = False) -> Optional[datetime]:
        with self._lock:
            return self._bonus_claims.get(anon_id)

    def set_last_bonus_claim(self, anon_id: str, claimed_at: datetime) -> None:
        with self._lock:
            self._bonus_claims[anon_id] = claimed_at

    def health_check(self) -> bool:
        return True

    def user_count(self) -> int:
        return len(self._users)
