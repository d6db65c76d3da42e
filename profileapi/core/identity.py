from typing import Mapping, Optional

from starlette.responses import Response

from profileapi.config import Settings
from profileapi.schemas.profile import ResolvedIdentity

DEFAULT_HEADER_NAME = "X-Anon-Id"
DEFAULT_COOKIE_NAME = "anon_id"


def resolve_anon_id(
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    header_name: str = DEFAULT_HEADER_NAME,
    cookie_name: str = DEFAULT_COOKIE_NAME,
) -> Optional[str]:
    """Return the anonymous id carried by a request, or None.

    The header wins over the cookie; blank values count as absent. Never mints
    a new id.
    """
    header_value = headers.get(header_name)
    if header_value is None and header_name.lower() != header_name:
        header_value = headers.get(header_name.lower())
    if header_value and header_value.strip():
        return header_value.strip()

    cookie_value = cookies.get(cookie_name)
    if cookie_value and cookie_value.strip():
        return cookie_value.strip()

    return None


def attach_identity(response: Response, identity: ResolvedIdentity, settings: Settings) -> None:
    """Echo the id in the response header; a freshly minted id also becomes a
    cookie on the shared parent domain so sibling sites pick it up."""
    response.headers[settings.ANON_ID_HEADER] = identity.anon_id
    if identity.minted:
        response.set_cookie(
            key=settings.COOKIE_NAME,
            value=identity.anon_id,
            max_age=settings.COOKIE_MAX_AGE_SECONDS,
            domain=settings.COOKIE_DOMAIN or None,
            path="/",
            secure=True,
            samesite="lax",
        )
