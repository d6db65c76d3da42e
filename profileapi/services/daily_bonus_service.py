import logging

from profileapi.config import Settings
from profileapi.core.exceptions import RateLimitError, ValidationError
from profileapi.core.rate_limit import SlidingWindowRateLimiter
from profileapi.repositories.base import StorageAdapter
from profileapi.schemas.credits import CreditsResponse, LedgerKind
from profileapi.services.credits_service import CreditsService
from profileapi.utils.timezone_utils import Clock, start_of_local_day, utc_now

logger = logging.getLogger(__name__)


class DailyBonusService:
    """Daily bonus claims

    Two gates run before anything is written:

    1. sliding window limiter: a second attempt inside the window is a 429
    2. calendar day: one successful claim per local day (``TIMEZONE``)
    """

    def __init__(
        self,
        storage: StorageAdapter,
        credits_service: CreditsService,
        limiter: SlidingWindowRateLimiter,
        settings: Settings,
        clock: Clock = utc_now,
    ):
        self.storage = storage
        self.credits_service = credits_service
        self.limiter = limiter
        self.settings = settings
        self.clock = clock

    def claim(self, anon_id: str) -> CreditsResponse:
        if not self.limiter.is_allowed(anon_id):
            logger.warning(f"Daily bonus rate limited for {anon_id}")
            raise RateLimitError(
                "Daily bonus can only be claimed once per hour",
                retry_after=self.limiter.retry_after(anon_id),
            )

        now = self.clock()
        day_start = start_of_local_day(now, self.settings.TIMEZONE)

        with self.storage.transaction():
            # The account row lock serializes claims even before a claim row exists.
            self.storage.get_credits(anon_id, for_update=True)
            last_claimed_at = self.storage.get_last_bonus_claim(anon_id, for_update=True)
            if last_claimed_at is not None and last_claimed_at >= day_start:
                logger.warning(f"Daily bonus already claimed today by {anon_id}")
                raise ValidationError("Daily bonus already claimed today")

            self.credits_service.apply_delta(
                anon_id,
                self.settings.DAILY_BONUS_AMOUNT,
                LedgerKind.DAILY_BONUS,
                "Daily bonus",
            )
            self.storage.set_last_bonus_claim(anon_id, now)

        logger.info(f"Daily bonus of {self.settings.DAILY_BONUS_AMOUNT} granted to {anon_id}")
        return self.credits_service.get_credits_snapshot(anon_id)
