"""
Credits API router

- GET /api/credits: balance plus the latest ledger entries
- POST /api/credits/daily-award: claim the daily bonus
- POST /api/credits/adjust: administrative delta (X-Admin-Token when configured)
- POST /api/credits/spend: deduct credits, never below zero
- GET /api/credits/integrity: balance versus ledger sum
"""

from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query

from profileapi.containers import Container
from profileapi.deps import get_anon_id, require_admin_token
from profileapi.schemas.credits import (
    CreditAdjustRequest,
    CreditSpendRequest,
    CreditsIntegrityResponse,
    CreditsResponse,
)
from profileapi.services.credits_service import CreditsService
from profileapi.services.daily_bonus_service import DailyBonusService

router = APIRouter(prefix="/api/credits", tags=["credits"])


@router.get("", response_model=CreditsResponse)
@inject
async def get_credits(
    limit: Optional[int] = Query(None, description="Ledger entries to return (clamped to 1..50)"),
    anon_id: str = Depends(get_anon_id),
    credits_service: CreditsService = Depends(Provide[Container.services.credits_service]),
) -> CreditsResponse:
    return credits_service.get_credits_snapshot(anon_id, limit)


@router.post("/daily-award", response_model=CreditsResponse)
@inject
async def claim_daily_award(
    anon_id: str = Depends(get_anon_id),
    daily_bonus_service: DailyBonusService = Depends(
        Provide[Container.services.daily_bonus_service]
    ),
) -> CreditsResponse:
    """
    Claim today's bonus

    HTTP Status:
        200: bonus granted, updated balance and ledger
        400: already claimed today
        429: claimed again within the limiter window
    """
    return daily_bonus_service.claim(anon_id)


@router.post(
    "/adjust",
    response_model=CreditsResponse,
    dependencies=[Depends(require_admin_token)],
)
@inject
async def adjust_credits(
    payload: CreditAdjustRequest,
    anon_id: str = Depends(get_anon_id),
    credits_service: CreditsService = Depends(Provide[Container.services.credits_service]),
) -> CreditsResponse:
    """Apply a signed administrative delta; the balance may go negative."""
    return credits_service.adjust(anon_id, payload.amount, payload.reason)


@router.post("/spend", response_model=CreditsResponse)
@inject
async def spend_credits(
    payload: CreditSpendRequest,
    anon_id: str = Depends(get_anon_id),
    credits_service: CreditsService = Depends(Provide[Container.services.credits_service]),
) -> CreditsResponse:
    return credits_service.spend(anon_id, payload.amount, payload.reason)


@router.get("/integrity", response_model=CreditsIntegrityResponse)
@inject
async def verify_credits_integrity(
    anon_id: str = Depends(get_anon_id),
    credits_service: CreditsService = Depends(Provide[Container.services.credits_service]),
) -> CreditsIntegrityResponse:
    return credits_service.verify_integrity(anon_id)
