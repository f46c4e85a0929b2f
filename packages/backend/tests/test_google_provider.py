"""Google provider tests against a mocked Google (httpx.MockTransport)."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from instaflix.auth.errors import ProviderError
from instaflix.auth.providers import get_provider, list_providers
from instaflix.auth.providers.google import TOKEN_URL, USERINFO_URL, GoogleProvider
from instaflix.config import settings

PROFILE = {
    "sub": "109876543210",
    "email": "grace@example.com",
    "email_verified": True,
    "name": "Grace Hopper",
    "picture": "https://lh3.example.com/grace.png",
}


def _google(profile=None, token_status=200, userinfo_status=200, calls=None):
    """Mock transport playing Google's token and userinfo endpoints."""
    profile = PROFILE if profile is None else profile

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        url = str(request.url)
        if url == TOKEN_URL:
            if token_status != 200:
                return httpx.Response(token_status, json={"error": "invalid_grant"})
            form = parse_qs(request.content.decode())
            assert form["code"] == ["auth-code"]
            assert form["grant_type"] == ["authorization_code"]
            return httpx.Response(200, json={"access_token": "ya29.token", "token_type": "Bearer"})
        if url == USERINFO_URL:
            assert request.headers["Authorization"] == "Bearer ya29.token"
            return httpx.Response(userinfo_status, json=profile)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def _provider(transport: httpx.MockTransport) -> GoogleProvider:
    return GoogleProvider(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://test/api/v1/auth/google/callback",
        http_client=httpx.AsyncClient(transport=transport),
    )


def test_registry():
    assert list_providers() == ["google"]
    assert isinstance(get_provider("google", settings), GoogleProvider)
    with pytest.raises(ValueError, match="Unknown identity provider"):
        get_provider("myspace", settings)


def test_authorization_url():
    provider = _provider(_google())
    url = urlparse(provider.authorization_url("state-123"))
    query = parse_qs(url.query)
    assert url.netloc == "accounts.google.com"
    assert query["client_id"] == ["client-id"]
    assert query["state"] == ["state-123"]
    assert query["redirect_uri"] == ["http://test/api/v1/auth/google/callback"]
    assert query["scope"] == ["openid profile email"]


@pytest.mark.asyncio
async def test_code_exchange_yields_assertion():
    calls = []
    assertion = await _provider(_google(calls=calls)).verify_external_assertion(
        {"code": "auth-code", "state": "s"}
    )
    assert assertion.external_id == "109876543210"
    assert assertion.email == "grace@example.com"
    assert assertion.display_name == "Grace Hopper"
    assert assertion.avatar_url == "https://lh3.example.com/grace.png"
    assert [str(c.url) for c in calls] == [TOKEN_URL, USERINFO_URL]


@pytest.mark.asyncio
async def test_minimal_profile():
    profile = {"sub": 42, "email": "min@example.com"}
    assertion = await _provider(_google(profile=profile)).verify_external_assertion(
        {"code": "auth-code"}
    )
    assert assertion.external_id == "42"
    assert assertion.display_name == ""
    assert assertion.avatar_url is None


@pytest.mark.asyncio
async def test_user_denied_consent():
    calls = []
    with pytest.raises(ProviderError, match="access_denied"):
        await _provider(_google(calls=calls)).verify_external_assertion(
            {"error": "access_denied"}
        )
    assert calls == []


@pytest.mark.asyncio
async def test_missing_code():
    with pytest.raises(ProviderError):
        await _provider(_google()).verify_external_assertion({})


@pytest.mark.asyncio
async def test_rejected_code():
    with pytest.raises(ProviderError, match="invalid_grant"):
        await _provider(_google(token_status=400)).verify_external_assertion(
            {"code": "auth-code"}
        )


@pytest.mark.asyncio
async def test_userinfo_failure():
    with pytest.raises(ProviderError):
        await _provider(_google(userinfo_status=401)).verify_external_assertion(
            {"code": "auth-code"}
        )


@pytest.mark.asyncio
async def test_unverified_email_rejected():
    profile = dict(PROFILE, email_verified=False)
    with pytest.raises(ProviderError, match="not verified"):
        await _provider(_google(profile=profile)).verify_external_assertion(
            {"code": "auth-code"}
        )


@pytest.mark.asyncio
async def test_profile_without_email_rejected():
    profile = {"sub": "1"}
    with pytest.raises(ProviderError):
        await _provider(_google(profile=profile)).verify_external_assertion(
            {"code": "auth-code"}
        )


@pytest.mark.asyncio
async def test_google_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError, match="unreachable"):
        await _provider(httpx.MockTransport(handler)).verify_external_assertion(
            {"code": "auth-code"}
        )
