"""
Profile API router

- GET /api/userinfo, GET /api/profile: resolve (or bootstrap) the caller and
  return the profile
- POST /api/profile: partial update of displayName / avatarUrl
"""

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Body, Depends

from profileapi.containers import Container
from profileapi.deps import get_anon_id
from profileapi.schemas.profile import ProfileUpdateRequest, UserInfoResponse
from profileapi.services.profile_service import ProfileService

router = APIRouter(prefix="/api", tags=["profile"])


@router.get("/userinfo", response_model=UserInfoResponse)
@router.get("/profile", response_model=UserInfoResponse)
@inject
async def get_profile(
    anon_id: str = Depends(get_anon_id),
    profile_service: ProfileService = Depends(Provide[Container.services.profile_service]),
) -> UserInfoResponse:
    """Profile of the calling anonymous identity."""
    return UserInfoResponse.from_profile(profile_service.get_profile(anon_id))


@router.post("/profile", response_model=UserInfoResponse)
@inject
async def update_profile(
    payload: ProfileUpdateRequest = Body(...),
    anon_id: str = Depends(get_anon_id),
    profile_service: ProfileService = Depends(Provide[Container.services.profile_service]),
) -> UserInfoResponse:
    """
    Update display fields; omitted fields are left unchanged

    HTTP Status:
        200: updated profile
        400: a field has the wrong type or is too long
    """
    profile = profile_service.update_profile(anon_id, payload.changes())
    return UserInfoResponse.from_profile(profile)
