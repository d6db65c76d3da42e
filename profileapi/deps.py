import hmac
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, Header, Request, Response

from profileapi.config import Settings
from profileapi.containers import Container
from profileapi.core.exceptions import AuthorizationError
from profileapi.core.identity import attach_identity, resolve_anon_id
from profileapi.services.profile_service import ProfileService


@inject
def get_anon_id(
    request: Request,
    response: Response,
    settings: Settings = Depends(Provide[Container.config.config]),
    profile_service: ProfileService = Depends(Provide[Container.services.profile_service]),
) -> str:
    """
    Resolve the caller's anonymous id, bootstrapping it on first sight

    The identity is kept on ``request.state`` so error responses carry it too.
    """
    candidate = resolve_anon_id(
        request.headers,
        request.cookies,
        header_name=settings.ANON_ID_HEADER,
        cookie_name=settings.COOKIE_NAME,
    )
    identity = profile_service.resolve_or_create_identity(candidate)

    request.state.identity = identity
    attach_identity(response, identity, settings)
    return identity.anon_id


@inject
def require_admin_token(
    x_admin_token: Optional[str] = Header(None),
    settings: Settings = Depends(Provide[Container.config.config]),
) -> None:
    """Guard for administrative endpoints; open when ADMIN_TOKEN is empty."""
    expected = settings.ADMIN_TOKEN
    if not expected:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode(), expected.encode()):
        raise AuthorizationError("Admin token required")
