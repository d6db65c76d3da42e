"""
Relational storage adapter (SQLAlchemy)

Production backend. Every public call runs in a session; calls made inside
``transaction()`` share one session and commit together, so the balance write
and its ledger row can never be split.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Mapping, Optional, Tuple

from sqlalchemy import func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from profileapi.core.exceptions import ConflictError, NotFoundError
from profileapi.database.connection import create_session_factory
from profileapi.models.base import Base
from profileapi.models.credits import BonusClaim, CreditLedger, Credits
from profileapi.models.profile import User
from profileapi.repositories.base import StorageAdapter
from profileapi.schemas.credits import CreditsAccount, LedgerEntry, LedgerEntryCreate, LedgerKind
from profileapi.schemas.profile import UserProfile
from profileapi.utils.timezone_utils import Clock, ensure_aware, utc_now

logger = logging.getLogger(__name__)

# domain field -> column attribute
PROFILE_COLUMNS = {"display_name": "name", "avatar_url": "avatar_url"}


class SqlStorageAdapter(StorageAdapter):
    name = "sql"

    def __init__(self, engine: Engine, clock: Clock = utc_now):
        self.engine = engine
        self.clock = clock
        self.session_factory = create_session_factory(engine)
        self._local = threading.local()

    def create_schema(self) -> None:
        """Create missing tables (development and tests)."""
        Base.metadata.create_all(bind=self.engine)

    def _now(self) -> datetime:
        return ensure_aware(self.clock()).astimezone(timezone.utc)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "session", None) is not None:
            yield
            return

        db: Session = self.session_factory()
        self._local.session = db
        try:
            yield
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConflictError(f"Conflicting write: {e.orig}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            self._local.session = None
            db.close()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        active = getattr(self._local, "session", None)
        if active is not None:
            yield active
            return
        with self.transaction():
            yield self._local.session

    # Row -> schema

    @staticmethod
    def _to_profile(row: User) -> UserProfile:
        return UserProfile(
            anon_id=row.anon_id,
            linked_account_id=row.user_id,
            display_name=row.name,
            avatar_url=row.avatar_url,
            created_at=ensure_aware(row.created_at),
            updated_at=ensure_aware(row.updated_at),
        )

    @staticmethod
    def _to_account(row: Credits) -> CreditsAccount:
        return CreditsAccount(
            anon_id=row.anon_id,
            balance=row.balance,
            updated_at=ensure_aware(row.updated_at),
        )

    @staticmethod
    def _to_entry(row: CreditLedger) -> LedgerEntry:
        return LedgerEntry(
            id=row.id,
            anon_id=row.anon_id,
            amount=row.amount,
            kind=LedgerKind(row.type),
            reason=row.reason,
            created_at=ensure_aware(row.created_at),
        )

    @staticmethod
    def _load(db: Session, model, key: str, for_update: bool = False):
        if for_update:
            # Re-read under the row lock; the identity map may hold a stale copy.
            return db.get(model, key, with_for_update=True, populate_existing=True)
        return db.get(model, key)

    # Users

    def get_user(self, anon_id: str) -> Optional[UserProfile]:
        with self._session() as db:
            row = db.get(User, anon_id)
            return self._to_profile(row) if row else None

    def create_user(self, anon_id: str) -> UserProfile:
        with self._session() as db:
            if db.get(User, anon_id) is not None:
                raise ConflictError(f"User already exists: {anon_id}")
            now = self._now()
            row = User(anon_id=anon_id, created_at=now, updated_at=now)
            db.add(row)
            try:
                db.flush()
            except IntegrityError as e:
                raise ConflictError(f"User already exists: {anon_id}") from e
            return self._to_profile(row)

    def update_user(self, anon_id: str, updates: Mapping[str, Optional[str]]) -> UserProfile:
        with self._session() as db:
            row = db.get(User, anon_id)
            if row is None:
                raise NotFoundError(f"User not found: {anon_id}")
            for key, value in updates.items():
                column = PROFILE_COLUMNS.get(key)
                if column:
                    setattr(row, column, value)
            row.updated_at = self._now()
            db.flush()
            return self._to_profile(row)

    # Credits

    def get_credits(self, anon_id: str, for_update: bool = False) -> Optional[CreditsAccount]:
        with self._session() as db:
            row = self._load(db, Credits, anon_id, for_update)
            return self._to_account(row) if row else None

    def create_credits(self, anon_id: str, initial_balance: int = 0) -> CreditsAccount:
        with self._session() as db:
            if db.get(Credits, anon_id) is not None:
                raise ConflictError(f"Credits already exist: {anon_id}")
            row = Credits(anon_id=anon_id, balance=initial_balance, updated_at=self._now())
            db.add(row)
            try:
                db.flush()
            except IntegrityError as e:
                raise ConflictError(f"Credits already exist: {anon_id}") from e
            return self._to_account(row)

    def set_credits_balance(self, anon_id: str, new_balance: int) -> CreditsAccount:
        with self._session() as db:
            row = self._load(db, Credits, anon_id, for_update=True)
            if row is None:
                raise NotFoundError(f"Credits not found: {anon_id}")
            row.balance = new_balance
            row.updated_at = self._now()
            db.flush()
            return self._to_account(row)

    # Ledger

    def list_ledger(self, anon_id: str, limit: int = 50) -> List[LedgerEntry]:
        with self._session() as db:
            rows = db.scalars(
                select(CreditLedger)
                .where(CreditLedger.anon_id == anon_id)
                .order_by(CreditLedger.created_at.desc(), CreditLedger.seq.desc())
                .limit(limit)
            ).all()
            return [self._to_entry(row) for row in rows]

    def append_ledger_entry(self, entry: LedgerEntryCreate) -> LedgerEntry:
        with self._session() as db:
            row = CreditLedger(
                id=str(uuid.uuid4()),
                anon_id=entry.anon_id,
                amount=entry.amount,
                type=entry.kind.value,
                reason=entry.reason,
                created_at=self._now(),
            )
            db.add(row)
            db.flush()
            return self._to_entry(row)

    def sum_ledger(self, anon_id: str) -> Tuple[int, int]:
        with self._session() as db:
            total, count = db.execute(
                select(
                    func.coalesce(func.sum(CreditLedger.amount), 0),
                    func.count(CreditLedger.seq),
                ).where(CreditLedger.anon_id == anon_id)
            ).one()
            return int(total or 0), int(count or 0)

    # Daily bonus

    def get_last_bonus_claim(self, anon_id: str, for_update: bool = False) -> Optional[datetime]:
        with self._session() as db:
            row = self._load(db, BonusClaim, anon_id, for_update)
            return ensure_aware(row.last_claimed_at) if row else None

    def set_last_bonus_claim(self, anon_id: str, claimed_at: datetime) -> None:
        claimed_at = ensure_aware(claimed_at).astimezone(timezone.utc)
        with self._session() as db:
            row = db.get(BonusClaim, anon_id)
            if row is None:
                db.add(BonusClaim(anon_id=anon_id, last_claimed_at=claimed_at))
            else:
                row.last_claimed_at = claimed_at
            db.flush()

    def health_check(self) -> bool:
        try:
            with self.session_factory() as db:
                db.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {str(e)}")
            return False
