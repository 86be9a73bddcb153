from urllib.parse import parse_qs, urlparse

import pytest

from mccdash import create_app
from mccdash.monitoring.server_log import memory_handler

OWNER = "owner@example.com"


@pytest.fixture
def overrides(tmp_path):
    # short credentials keep the Ads client in mock mode
    return {
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "WTF_CSRF_ENABLED": False,
        "RATELIMIT_ENABLED": False,
        "SESSION_COOKIE_SECURE": False,
        "GOOGLE_CLIENT_ID": "test-id",
        "GOOGLE_CLIENT_SECRET": "test-secret",
        "GOOGLE_ADS_DEVELOPER_TOKEN": "dev",
        "OAUTH_REDIRECT_URI": "http://localhost/auth/google/callback",
        "APP_ERROR_LOG": str(tmp_path / "app.log"),
        "FILE_LOGGING": False,
        "SENTRY_DSN": "",
        "ENVIRONMENT": "testing",
        "ADMIN_EMAIL": OWNER,
    }


@pytest.fixture
def app(overrides):
    memory_handler.clear()
    app = create_app(overrides)
    yield app
    memory_handler.clear()


@pytest.fixture
def client(app):
    return app.test_client()


def sign_in(client, monkeypatch, email=OWNER, refresh_token="1//refresh-token"):
    monkeypatch.setattr(
        "mccdash.auth.exchange_code",
        lambda code, redirect_uri: {"access_token": "ya29.test", "refresh_token": refresh_token, "expires_in": 3600},
    )
    monkeypatch.setattr("mccdash.auth.fetch_userinfo", lambda token: {"email": email, "name": "Owner"})
    r = client.get("/auth/google")
    state = parse_qs(urlparse(r.headers["Location"]).query)["state"][0]
    return client.get(f"/auth/google/callback?code=abc&state={state}")


@pytest.fixture
def signed_in(client, monkeypatch):
    sign_in(client, monkeypatch)
    return client


@pytest.fixture
def real_credentials(app):
    """Credentials long enough to take the Ads client out of mock mode."""
    app.config.update(
        GOOGLE_CLIENT_ID="client-id-1234567890.apps.googleusercontent.com",
        GOOGLE_CLIENT_SECRET="client-secret-abcdefghij",
        GOOGLE_ADS_DEVELOPER_TOKEN="dev-token-abcdefghij",
        GOOGLE_ADS_FALLBACK_ACCOUNT_IDS=(),
    )
    return app


def no_sdk(*a, **kw):
    raise RuntimeError("sdk unavailable")
