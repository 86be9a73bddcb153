import json
import time

import pytest
import requests
from flask import session

from mccdash.auth.session_utils import SessionUser
from mccdash.google import token_utils
from mccdash.google.utils_ads import list_accessible_customers


def response(status, body=None):
    r = requests.Response()
    r.status_code = status
    r._content = b"" if body is None else json.dumps(body).encode()
    r.encoding = "utf-8"
    r.url = "https://googleads.googleapis.com"
    return r


def test_retired_version_falls_through_to_next(monkeypatch):
    seen = []

    def get(url, headers, timeout):
        seen.append(url)
        if "/v21/" in url:
            return response(404)
        return response(200, {"resourceNames": ["customers/111"]})

    monkeypatch.setattr("mccdash.google.utils_ads.requests.get", get)
    assert list_accessible_customers("ya29", "dev", versions=("v21", "v20")) == ["customers/111"]
    assert [u.split("/")[3] for u in seen] == ["v21", "v20"]


def test_every_version_missing_raises(monkeypatch):
    monkeypatch.setattr("mccdash.google.utils_ads.requests.get", lambda url, headers, timeout: response(404))
    with pytest.raises(requests.HTTPError) as exc:
        list_accessible_customers("ya29", "dev", versions=("v21", "v20"))
    assert "['v21', 'v20']" in str(exc.value)


def test_other_errors_are_not_retried(monkeypatch):
    seen = []

    def get(url, headers, timeout):
        seen.append(url)
        return response(403, {"error": "denied"})

    monkeypatch.setattr("mccdash.google.utils_ads.requests.get", get)
    with pytest.raises(requests.HTTPError):
        list_accessible_customers("ya29", "dev", versions=("v21", "v20"))
    assert len(seen) == 1


# ---- access token refresh margin -------------------------------------------

def user(expires_in):
    return SessionUser({
        "email": "owner@example.com",
        "access_token": "ya29.old",
        "refresh_token": "1//refresh",
        "expires_at": int(time.time()) + expires_in,
    })


@pytest.fixture
def refreshes(monkeypatch):
    calls = []

    def refresh(refresh_token, client_id, client_secret):
        calls.append(refresh_token)
        return {"access_token": "ya29.new", "expires_in": 3600}

    monkeypatch.setattr("mccdash.google.token_utils.refresh_access_token", refresh)
    return calls


def test_token_outside_margin_is_reused(app, refreshes):
    with app.test_request_context():
        assert token_utils.ensure_access_token(user(300)) == "ya29.old"
    assert refreshes == []


def test_token_inside_margin_is_refreshed(app, refreshes):
    with app.test_request_context():
        assert token_utils.ensure_access_token(user(60)) == "ya29.new"
        assert session["google_user"]["access_token"] == "ya29.new"
        assert session["google_user"]["expires_at"] > time.time() + 3000
    assert refreshes == ["1//refresh"]
