import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import make_settings
from profileapi.main import create_app
from profileapi.sdk.client import ProfileServiceClient, ProfileServiceClientError


@pytest.fixture
def sdk(client):
    return ProfileServiceClient(http_client=client)


class TestProfileServiceClient:
    def test_keeps_minted_identity(self, sdk):
        info = sdk.get_user_info()

        assert sdk.anon_id == info.anon_id
        assert sdk.get_profile().anon_id == info.anon_id

    def test_full_flow(self, sdk):
        sdk.anon_id = "sdk-anon"

        profile = sdk.update_profile(display_name="Ann")
        bonus = sdk.claim_daily_bonus()
        adjusted = sdk.adjust_credits(25, "promo")
        spent = sdk.spend_credits(35, "render")

        assert profile.display_name == "Ann"
        assert bonus.balance == 110
        assert adjusted.balance == 135
        assert spent.balance == 100
        assert len(sdk.get_credits(limit=2).ledger) == 2
        assert sdk.verify_integrity().status == "OK"

    def test_error_response_raises(self, sdk):
        sdk.anon_id = "sdk-anon"
        sdk.claim_daily_bonus()

        with pytest.raises(ProfileServiceClientError) as exc_info:
            sdk.claim_daily_bonus()

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Daily bonus can only be claimed once per hour"
        assert exc_info.value.code == "RATE_LIMIT_001"

    def test_health_check(self, sdk):
        assert sdk.health_check() is True


class TestTransportFailures:
    def _client(self, handler):
        http_client = httpx.Client(base_url="http://profile.test", transport=httpx.MockTransport(handler))
        return ProfileServiceClient(anon_id="anon-1", http_client=http_client)

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        sdk = self._client(handler)

        with pytest.raises(ProfileServiceClientError) as exc_info:
            sdk.get_credits()

        assert exc_info.value.status_code == 503
        assert sdk.health_check() is False

    def test_non_json_error_body(self):
        sdk = self._client(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(ProfileServiceClientError) as exc_info:
            sdk.get_user_info()

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "HTTP 502"

    def test_sends_identity_header(self):
        seen = {}

        def handler(request):
            seen["anon"] = request.headers.get("X-Anon-Id")
            return httpx.Response(200, json={"balance": 5, "ledger": []})

        sdk = self._client(handler)

        assert sdk.get_credits().balance == 5
        assert seen["anon"] == "anon-1"

    def test_admin_token_header(self, clock):
        app = create_app(settings=make_settings(ADMIN_TOKEN="t0ken"), clock=clock)
        sdk = ProfileServiceClient(anon_id="a1", admin_token="t0ken", http_client=TestClient(app))

        assert sdk.adjust_credits(5, "x").balance == 105
