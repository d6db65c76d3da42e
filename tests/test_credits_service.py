import threading
from unittest.mock import patch

import pytest

from profileapi.core.exceptions import InsufficientBalanceError, ValidationError
from profileapi.schemas.credits import LedgerKind
from profileapi.services.credits_service import CreditsService
from profileapi.services.profile_service import ProfileService


@pytest.fixture
def credits_service(storage, settings, clock):
    return CreditsService(storage, settings, clock=clock)


@pytest.fixture
def anon_id(storage, credits_service, settings):
    """A bootstrapped identity holding the initial 100 credits"""
    ProfileService(storage, credits_service, settings).resolve_or_create_identity("anon-1")
    return "anon-1"


def assert_balanced(storage, anon_id):
    total, _ = storage.sum_ledger(anon_id)
    assert storage.get_credits(anon_id).balance == total


class TestApplyDelta:
    def test_updates_balance_and_appends_entry(self, credits_service, storage, anon_id):
        # When
        account, entry = credits_service.apply_delta(anon_id, 40, LedgerKind.EARN, "quiz")

        # Then
        assert account.balance == 140
        assert entry.amount == 40
        assert entry.kind == LedgerKind.EARN
        assert entry.reason == "quiz"
        assert storage.list_ledger(anon_id)[0].id == entry.id
        assert_balanced(storage, anon_id)

    def test_creates_missing_account(self, credits_service, storage):
        account, _ = credits_service.apply_delta("fresh", 7, LedgerKind.EARN)

        assert account.balance == 7
        assert_balanced(storage, "fresh")

    def test_floor_violation_writes_nothing(self, credits_service, storage, anon_id):
        with pytest.raises(InsufficientBalanceError):
            credits_service.apply_delta(anon_id, -101, LedgerKind.SPEND, floor=0)

        assert storage.get_credits(anon_id).balance == 100
        assert storage.sum_ledger(anon_id) == (100, 1)

    def test_balance_is_read_under_row_lock(self, credits_service, storage, anon_id):
        with patch.object(storage, "get_credits", wraps=storage.get_credits) as get_credits:
            credits_service.apply_delta(anon_id, 5, LedgerKind.EARN)

        assert get_credits.call_args_list[0].args == (anon_id,)
        assert get_credits.call_args_list[0].kwargs == {"for_update": True}

    def test_concurrent_deltas_keep_ledger_balanced(self, memory_storage, settings, clock):
        service = CreditsService(memory_storage, settings, clock=clock)
        ProfileService(memory_storage, service, settings).resolve_or_create_identity("anon-1")
        barrier = threading.Barrier(8)

        def earn():
            barrier.wait()
            service.apply_delta("anon-1", 10, LedgerKind.EARN)

        threads = [threading.Thread(target=earn) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert memory_storage.get_credits("anon-1").balance == 180
        assert memory_storage.sum_ledger("anon-1") == (180, 9)


class TestAdjust:
    def test_adjust_can_go_negative(self, credits_service, storage, anon_id):
        credits_service.apply_delta(anon_id, 10, LedgerKind.DAILY_BONUS, "Daily bonus")

        credits_service.adjust(anon_id, 25, "promo")
        snapshot = credits_service.adjust(anon_id, -150, "chargeback")

        assert snapshot.balance == -15
        assert [e.amount for e in snapshot.ledger[:2]] == [-150, 25]
        assert all(e.type == LedgerKind.ADJUST for e in snapshot.ledger[:2])
        assert_balanced(storage, anon_id)

    def test_zero_adjustment_rejected(self, credits_service, storage, anon_id):
        with pytest.raises(ValidationError):
            credits_service.adjust(anon_id, 0, "noop")

        assert storage.sum_ledger(anon_id) == (100, 1)


class TestSpend:
    def test_spend_deducts(self, credits_service, storage, anon_id):
        snapshot = credits_service.spend(anon_id, 30, "image generation")

        assert snapshot.balance == 70
        assert snapshot.ledger[0].amount == -30
        assert snapshot.ledger[0].type == LedgerKind.SPEND
        assert_balanced(storage, anon_id)

    def test_spend_entire_balance(self, credits_service, anon_id):
        assert credits_service.spend(anon_id, 100, "all in").balance == 0

    def test_spend_beyond_balance_rejected(self, credits_service, storage, anon_id):
        with pytest.raises(InsufficientBalanceError):
            credits_service.spend(anon_id, 101, "too much")

        assert storage.get_credits(anon_id).balance == 100
        assert len(storage.list_ledger(anon_id)) == 1

    def test_non_positive_spend_rejected(self, credits_service, anon_id):
        with pytest.raises(ValidationError):
            credits_service.spend(anon_id, 0, "nothing")


class TestSnapshot:
    def test_snapshot_newest_first(self, credits_service, clock, anon_id):
        clock.advance(minutes=1)
        credits_service.adjust(anon_id, 5, "later")

        snapshot = credits_service.get_credits_snapshot(anon_id)

        assert snapshot.balance == 105
        assert [e.type for e in snapshot.ledger] == [LedgerKind.ADJUST, LedgerKind.INITIAL]
        assert snapshot.ledger[0].ts.endswith("Z")

    @pytest.mark.parametrize("limit,expected", [(1, 1), (0, 1), (-3, 1), (500, 50), (None, 50)])
    def test_limit_is_clamped(self, credits_service, anon_id, limit, expected):
        for i in range(70):
            credits_service.apply_delta(anon_id, 1, LedgerKind.EARN, f"tick {i}")

        snapshot = credits_service.get_credits_snapshot(anon_id, limit)

        assert len(snapshot.ledger) == expected
        assert snapshot.balance == 170

    def test_unknown_identity(self, credits_service):
        snapshot = credits_service.get_credits_snapshot("nobody")

        assert snapshot.balance == 0
        assert snapshot.ledger == []


class TestVerifyIntegrity:
    def test_ok(self, credits_service, anon_id):
        credits_service.spend(anon_id, 20, "x")

        result = credits_service.verify_integrity(anon_id)

        assert result.status == "OK"
        assert result.balance == 80
        assert result.ledger_total == 80
        assert result.entry_count == 2

    def test_mismatch_detected(self, credits_service, storage, anon_id):
        storage.set_credits_balance(anon_id, 999)

        result = credits_service.verify_integrity(anon_id)

        assert result.status == "MISMATCH"
        assert result.balance == 999
        assert result.ledger_total == 100
