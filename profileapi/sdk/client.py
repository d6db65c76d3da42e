"""
Server-side client for the profile service API

Carries the anonymous id in the ``X-Anon-Id`` header. Browser-side identity
(cookie, storage bridge) is handled by ``/storage.html``; this client is for
backends that already know which anon id they act for, or want one minted.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from profileapi.schemas.credits import CreditsIntegrityResponse, CreditsResponse
from profileapi.schemas.profile import UserInfoResponse

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://profile.jinxcodes.ai"


class ProfileServiceClientError(Exception):
    """Error response (or transport failure) from the profile service."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(message)


class ProfileServiceClient:
    """Synchronous profile service client

    ``http_client`` may be any ``httpx.Client`` (including FastAPI's
    ``TestClient``); when omitted the client owns one bound to ``base_url``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        anon_id: Optional[str] = None,
        anon_id_header: str = "X-Anon-Id",
        admin_token: Optional[str] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.anon_id = anon_id
        self.anon_id_header = anon_id_header
        self.admin_token = admin_token
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            base_url=base_url.rstrip("/"), timeout=httpx.Timeout(timeout, connect=5.0)
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ProfileServiceClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Profile

    def get_user_info(self) -> UserInfoResponse:
        return UserInfoResponse.model_validate(self._call("GET", "/api/userinfo"))

    def get_profile(self) -> UserInfoResponse:
        return UserInfoResponse.model_validate(self._call("GET", "/api/profile"))

    def update_profile(
        self, display_name: Optional[str] = None, avatar_url: Optional[str] = None
    ) -> UserInfoResponse:
        body: Dict[str, Any] = {}
        if display_name is not None:
            body["displayName"] = display_name
        if avatar_url is not None:
            body["avatarUrl"] = avatar_url
        return UserInfoResponse.model_validate(self._call("POST", "/api/profile", body))

    # Credits

    def get_credits(self, limit: Optional[int] = None) -> CreditsResponse:
        params = {"limit": limit} if limit is not None else None
        return CreditsResponse.model_validate(self._call("GET", "/api/credits", params=params))

    def claim_daily_bonus(self) -> CreditsResponse:
        return CreditsResponse.model_validate(self._call("POST", "/api/credits/daily-award", {}))

    def adjust_credits(self, amount: int, reason: str) -> CreditsResponse:
        headers = {"X-Admin-Token": self.admin_token} if self.admin_token else None
        payload = self._call(
            "POST", "/api/credits/adjust", {"amount": amount, "reason": reason}, headers=headers
        )
        return CreditsResponse.model_validate(payload)

    def spend_credits(self, amount: int, reason: str) -> CreditsResponse:
        payload = self._call("POST", "/api/credits/spend", {"amount": amount, "reason": reason})
        return CreditsResponse.model_validate(payload)

    def verify_integrity(self) -> CreditsIntegrityResponse:
        return CreditsIntegrityResponse.model_validate(self._call("GET", "/api/credits/integrity"))

    def health_check(self) -> bool:
        try:
            response = self._client.get("/api/healthz")
        except httpx.RequestError as exc:
            logger.warning("Profile service health check failed: %s", exc)
            return False
        return response.status_code == 200

    def _call(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        request_headers = dict(headers or {})
        if self.anon_id:
            request_headers[self.anon_id_header] = self.anon_id

        try:
            response = self._client.request(
                method, path, json=body, params=params, headers=request_headers
            )
        except httpx.TimeoutException as exc:
            raise ProfileServiceClientError(504, "Profile service request timed out") from exc
        except httpx.RequestError as exc:
            logger.warning("Profile service request error: %s", exc)
            raise ProfileServiceClientError(503, f"Profile service unavailable: {exc}") from exc

        # Keep the id the service minted so later calls stay on the same identity
        returned_id = response.headers.get(self.anon_id_header)
        if returned_id and not self.anon_id:
            self.anon_id = returned_id

        if response.status_code >= 400:
            try:
                error = response.json()
            except ValueError:
                error = {}
            if not isinstance(error, dict):
                error = {}
            raise ProfileServiceClientError(
                response.status_code,
                error.get("error") or f"HTTP {response.status_code}",
                error.get("code"),
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProfileServiceClientError(
                500, "Profile service returned an invalid JSON body"
            ) from exc
