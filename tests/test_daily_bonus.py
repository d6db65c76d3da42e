from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from conftest import make_settings
from profileapi.core.exceptions import RateLimitError, ValidationError
from profileapi.core.rate_limit import SlidingWindowRateLimiter
from profileapi.schemas.credits import LedgerKind
from profileapi.services.credits_service import CreditsService
from profileapi.services.daily_bonus_service import DailyBonusService
from profileapi.services.profile_service import ProfileService


def build_bonus_service(storage, settings, clock):
    credits_service = CreditsService(storage, settings, clock=clock)
    limiter = SlidingWindowRateLimiter(
        window_seconds=settings.DAILY_BONUS_WINDOW_SECONDS,
        max_requests=settings.DAILY_BONUS_MAX_ATTEMPTS,
        clock=clock,
    )
    ProfileService(storage, credits_service, settings).resolve_or_create_identity("anon-1")
    return DailyBonusService(storage, credits_service, limiter, settings, clock=clock)


@pytest.fixture
def bonus_service(storage, settings, clock):
    return build_bonus_service(storage, settings, clock)


class TestDailyBonusClaim:
    def test_first_claim_grants_bonus(self, bonus_service, storage, clock):
        # When
        snapshot = bonus_service.claim("anon-1")

        # Then
        assert snapshot.balance == 110
        assert snapshot.ledger[0].type == LedgerKind.DAILY_BONUS
        assert snapshot.ledger[0].amount == 10
        assert snapshot.ledger[0].reason == "Daily bonus"
        assert storage.get_last_bonus_claim("anon-1") == clock.now
        assert storage.sum_ledger("anon-1") == (110, 2)

    def test_retry_within_window_is_rate_limited(self, bonus_service, storage, clock):
        bonus_service.claim("anon-1")
        clock.advance(minutes=10)

        with pytest.raises(RateLimitError) as exc_info:
            bonus_service.claim("anon-1")

        assert exc_info.value.status_code == 429
        assert storage.get_credits("anon-1").balance == 110

    def test_second_claim_same_day_rejected(self, bonus_service, storage, clock):
        bonus_service.claim("anon-1")
        clock.advance(hours=2)

        with pytest.raises(ValidationError) as exc_info:
            bonus_service.claim("anon-1")

        assert exc_info.value.message == "Daily bonus already claimed today"
        assert storage.sum_ledger("anon-1") == (110, 2)

    def test_claim_again_next_day(self, bonus_service, clock):
        bonus_service.claim("anon-1")
        clock.advance(days=1)

        assert bonus_service.claim("anon-1").balance == 120

    def test_limiter_applies_across_midnight(self, storage, settings, clock):
        clock.set(datetime(2024, 1, 15, 23, 30, tzinfo=timezone.utc))
        service = build_bonus_service(storage, settings, clock)
        service.claim("anon-1")

        clock.advance(minutes=45)  # 00:15 the next day

        with pytest.raises(RateLimitError):
            service.claim("anon-1")

    def test_day_boundary_follows_configured_timezone(self, storage, clock):
        settings = make_settings(TIMEZONE="Asia/Seoul")
        # 14:00 UTC is 23:00 in Seoul; 16:00 UTC is already the next day there
        clock.set(datetime(2024, 1, 15, 14, 0, tzinfo=timezone.utc))
        service = build_bonus_service(storage, settings, clock)
        service.claim("anon-1")

        clock.advance(hours=2)

        assert service.claim("anon-1").balance == 120

    def test_failed_grant_leaves_no_claim_marker(self, bonus_service, storage):
        with patch.object(
            bonus_service.credits_service, "apply_delta", side_effect=RuntimeError("write failed")
        ):
            with pytest.raises(RuntimeError):
                bonus_service.claim("anon-1")

        assert storage.get_last_bonus_claim("anon-1") is None
        assert storage.get_credits("anon-1").balance == 100

    def test_failed_claim_marker_rolls_back_the_grant(self, bonus_service, storage):
        with patch.object(storage, "set_last_bonus_claim", side_effect=RuntimeError("write failed")):
            with pytest.raises(RuntimeError):
                bonus_service.claim("anon-1")

        assert storage.get_credits("anon-1").balance == 100
        assert storage.sum_ledger("anon-1") == (100, 1)
        assert storage.get_last_bonus_claim("anon-1") is None

    def test_claim_reads_under_row_lock(self, bonus_service, storage):
        with patch.object(
            storage, "get_last_bonus_claim", wraps=storage.get_last_bonus_claim
        ) as get_last_bonus_claim:
            bonus_service.claim("anon-1")

        get_last_bonus_claim.assert_called_once_with("anon-1", for_update=True)

    def test_identities_are_independent(self, bonus_service, storage, settings):
        ProfileService(storage, bonus_service.credits_service, settings).resolve_or_create_identity("anon-2")

        bonus_service.claim("anon-1")

        assert bonus_service.claim("anon-2").balance == 110
