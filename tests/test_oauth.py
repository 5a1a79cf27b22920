"""Unit tests for auth/oauth.py -- provider registry and verified-email extraction.

Covers:
- only providers with both client id and secret are enabled/registered
- GitHub: primary+verified email required; name falls back to login
- Google: email_verified required; missing claims rejected
- unknown provider rejected
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from auth.models import OAuthProfile
from auth.oauth import build_oauth, get_enabled_providers, get_oauth_user_info
from core.config import Settings


def _settings(**overrides) -> Settings:
    return Settings(debug=True, **overrides)


def _json_response(payload) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    return resp


def _github_client(profile: dict, emails: list[dict]) -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(side_effect=[_json_response(profile), _json_response(emails)])
    return client


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def test_no_credentials_no_providers() -> None:
    assert get_enabled_providers(_settings()) == []


def test_provider_needs_both_id_and_secret() -> None:
    settings = _settings(google_client_id="id-only", github_client_id="gh", github_client_secret="gh-secret")
    assert get_enabled_providers(settings) == [{"name": "github", "label": "GitHub"}]


def test_build_oauth_registers_enabled_providers() -> None:
    settings = _settings(github_client_id="gh", github_client_secret="gh-secret")
    oauth = build_oauth(settings)
    assert oauth.create_client("github") is not None
    assert oauth.create_client("google") is None


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_github_primary_verified_email() -> None:
    client = _github_client(
        {"id": 1234, "login": "octocat", "name": None},
        [
            {"email": "secondary@example.com", "primary": False, "verified": True},
            {"email": "octo@example.com", "primary": True, "verified": True},
        ],
    )
    profile = await get_oauth_user_info(client, "github", {"access_token": "t"})
    assert profile == OAuthProfile(email="octo@example.com", name="octocat", provider="github", subject="1234")


@pytest.mark.asyncio
async def test_github_unverified_primary_rejected() -> None:
    client = _github_client(
        {"id": 1234, "login": "octocat"},
        [{"email": "octo@example.com", "primary": True, "verified": False}],
    )
    with pytest.raises(ValueError):
        await get_oauth_user_info(client, "github", {"access_token": "t"})


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_google_verified_email() -> None:
    token = {"userinfo": {"email": "g@example.com", "email_verified": True, "sub": "g-1", "name": "Grace"}}
    profile = await get_oauth_user_info(MagicMock(), "google", token)
    assert profile == OAuthProfile(email="g@example.com", name="Grace", provider="google", subject="g-1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "token",
    [
        {},
        {"userinfo": {"email": "g@example.com", "sub": "g-1"}},
        {"userinfo": {"email": "g@example.com", "email_verified": False, "sub": "g-1"}},
        {"userinfo": {"email_verified": True, "sub": "g-1"}},
    ],
)
async def test_google_rejects_unverified_or_incomplete(token: dict) -> None:
    with pytest.raises(ValueError):
        await get_oauth_user_info(MagicMock(), "google", token)


@pytest.mark.asyncio
async def test_unknown_provider_rejected() -> None:
    with pytest.raises(ValueError):
        await get_oauth_user_info(MagicMock(), "myspace", {})
