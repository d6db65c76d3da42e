from typing import Optional, Tuple
import logging

from profileapi.config import Settings
from profileapi.core.exceptions import InsufficientBalanceError, ValidationError
from profileapi.repositories.base import StorageAdapter
from profileapi.schemas.credits import (
    CreditsAccount,
    CreditsIntegrityResponse,
    CreditsResponse,
    LedgerEntry,
    LedgerEntryCreate,
    LedgerEntryResponse,
    LedgerKind,
)
from profileapi.utils.timezone_utils import Clock, isoformat_utc, utc_now

logger = logging.getLogger(__name__)


class CreditsService:
    """Credits ledger engine

    Every balance change goes through ``apply_delta``, which updates the balance
    and appends the matching ledger entry in one storage transaction. That keeps
    ``balance == sum(ledger.amount)`` for every anon id.
    """

    def __init__(self, storage: StorageAdapter, settings: Settings, clock: Clock = utc_now):
        self.storage = storage
        self.settings = settings
        self.clock = clock

    def apply_delta(
        self,
        anon_id: str,
        amount: int,
        kind: LedgerKind,
        reason: Optional[str] = None,
        floor: Optional[int] = None,
    ) -> Tuple[CreditsAccount, LedgerEntry]:
        """Apply a signed delta and record it.

        Args:
            anon_id: Identity whose balance changes
            amount: Signed delta
            kind: Ledger entry kind
            reason: Free text stored on the entry
            floor: Lowest balance allowed after the change; None means unbounded

        Returns:
            (updated account, stored ledger entry)

        Raises:
            InsufficientBalanceError: the new balance would fall below ``floor``
        """
        with self.storage.transaction():
            account = self.storage.get_credits(anon_id, for_update=True)
            if account is None:
                account = self.storage.create_credits(anon_id, 0)

            new_balance = account.balance + amount
            if floor is not None and new_balance < floor:
                raise InsufficientBalanceError(
                    f"Insufficient balance: have {account.balance}, need {-amount}",
                    details={"balance": account.balance, "amount": amount},
                )

            updated = self.storage.set_credits_balance(anon_id, new_balance)
            entry = self.storage.append_ledger_entry(
                LedgerEntryCreate(anon_id=anon_id, amount=amount, kind=kind, reason=reason)
            )

        logger.info(
            f"Applied {kind.value} {amount:+d} for {anon_id}: {account.balance} -> {updated.balance}"
        )
        return updated, entry

    def grant_initial(self, anon_id: str) -> CreditsAccount:
        """Open the account with the configured initial grant.

        Must run inside the caller's bootstrap transaction.
        """
        amount = self.settings.INITIAL_CREDITS_AMOUNT
        if self.storage.get_credits(anon_id) is not None:
            account, _ = self.apply_delta(anon_id, amount, LedgerKind.INITIAL, "Initial credits")
            return account

        account = self.storage.create_credits(anon_id, amount)
        self.storage.append_ledger_entry(
            LedgerEntryCreate(
                anon_id=anon_id,
                amount=amount,
                kind=LedgerKind.INITIAL,
                reason="Initial credits",
            )
        )
        return account

    def get_credits_snapshot(self, anon_id: str, limit: Optional[int] = None) -> CreditsResponse:
        """Current balance plus the latest ledger entries, newest first.

        ``limit`` is clamped to 1..LEDGER_PAGE_LIMIT.
        """
        max_limit = self.settings.LEDGER_PAGE_LIMIT
        limit = max_limit if limit is None else max(1, min(limit, max_limit))

        with self.storage.transaction():
            account = self.storage.get_credits(anon_id)
            entries = self.storage.list_ledger(anon_id, limit)

        return CreditsResponse(
            balance=account.balance if account else 0,
            ledger=[LedgerEntryResponse.from_entry(entry) for entry in entries],
        )

    def adjust(self, anon_id: str, amount: int, reason: str) -> CreditsResponse:
        """Administrative adjustment; the balance may go negative."""
        if amount == 0:
            raise ValidationError("Adjustment amount must not be zero")

        self.apply_delta(anon_id, amount, LedgerKind.ADJUST, reason)
        logger.info(f"Adjusted credits for {anon_id} by {amount:+d}: {reason}")
        return self.get_credits_snapshot(anon_id)

    def spend(self, anon_id: str, amount: int, reason: str) -> CreditsResponse:
        """Deduct ``amount`` credits; the balance may not go below zero."""
        if amount <= 0:
            raise ValidationError("Spend amount must be positive")

        try:
            self.apply_delta(anon_id, -amount, LedgerKind.SPEND, reason, floor=0)
        except InsufficientBalanceError:
            logger.warning(f"Rejected spend of {amount} for {anon_id}: insufficient balance")
            raise
        return self.get_credits_snapshot(anon_id)

    def verify_integrity(self, anon_id: str) -> CreditsIntegrityResponse:
        """Compare the stored balance with the sum of the ledger."""
        with self.storage.transaction():
            account = self.storage.get_credits(anon_id)
            ledger_total, entry_count = self.storage.sum_ledger(anon_id)

        balance = account.balance if account else 0
        status = "OK" if balance == ledger_total else "MISMATCH"
        if status != "OK":
            logger.error(
                f"Credits mismatch for {anon_id}: balance={balance} ledger_total={ledger_total}"
            )

        return CreditsIntegrityResponse(
            status=status,
            anon_id=anon_id,
            balance=balance,
            ledger_total=ledger_total,
            entry_count=entry_count,
            verified_at=isoformat_utc(self.clock()),
        )
