import gc
import sys
from urllib.parse import parse_qs, urlparse

from mccdash import create_app

from conftest import OWNER, sign_in


def test_google_start_redirects_with_offline_ads_scope(client):
    r = client.get("/auth/google")
    assert r.status_code == 302
    url = urlparse(r.headers["Location"])
    assert url.netloc == "accounts.google.com"
    params = parse_qs(url.query)
    assert "https://www.googleapis.com/auth/adwords" in params["scope"][0]
    assert params["access_type"] == ["offline"]
    assert params["prompt"] == ["consent"]
    with client.session_transaction() as s:
        assert s["google_oauth_state"] == params["state"][0]


def test_callback_rejects_mismatched_state(client):
    client.get("/auth/google")
    r = client.get("/auth/google/callback?code=abc&state=forged")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/login")
    with client.session_transaction() as s:
        assert "google_user" not in s


def test_callback_signs_in_and_stores_tokens(client, monkeypatch):
    r = sign_in(client, monkeypatch)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/dashboard")
    with client.session_transaction() as s:
        assert s["google_user"]["email"] == OWNER
        assert s["google_user"]["refresh_token"] == "1//refresh-token"


def test_login_next_is_honoured(client, monkeypatch):
    client.get("/login?next=/accounts/hierarchy")
    r = sign_in(client, monkeypatch)
    assert r.headers["Location"].endswith("/accounts/hierarchy")


def test_logout_clears_session(signed_in):
    r = signed_in.post("/logout")
    assert r.status_code == 302
    r = signed_in.get("/dashboard")
    assert r.status_code == 302
    assert "/login" in r.headers["Location"]


def test_api_requires_authentication(client):
    r = client.get("/api/google-ads/accounts")
    assert r.status_code == 401
    assert r.get_json() == {"error": "Not authenticated"}


def test_api_requires_refresh_token(client, monkeypatch):
    sign_in(client, monkeypatch, refresh_token=None)
    r = client.get("/api/google-ads/accounts")
    assert r.status_code == 401
    assert r.get_json()["code"] == "MISSING_REFRESH_TOKEN"


def test_health_reports_mock_mode(client):
    r = client.get("/__health__")
    assert r.status_code == 200
    assert r.get_json() == {"ok": True, "mockMode": True}


def test_app_factory_can_run_twice(overrides):
    first = create_app(overrides)
    del first
    gc.collect()
    second = create_app(overrides)
    assert not sys.stderr.closed
    assert second.test_client().get("/__health__").status_code == 200
