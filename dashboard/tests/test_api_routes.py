from types import SimpleNamespace

import pytest

from mccdash.cache import get_cache
from mccdash.google.ads_client import GoogleAdsApiClient, GoogleAdsApiError
from mccdash.google.token_utils import TokenCheck

from conftest import OWNER, no_sdk, sign_in

MCC_ID = "9876543210"


def campaign_payload(**kw):
    data = {
        "customerId": "1234567890",
        "name": "Spring Promo",
        "budget": 10,
        "maxCpc": 1.25,
        "headlines": [f"Headline {i}" for i in range(10)],
        "descriptions": ["Great prices.", "Book today."],
        "finalUrl": "https://www.example.com",
    }
    data.update(kw)
    return data


def fail(message, code="GOOGLE_ADS_API_ERROR", resource_names=None):
    def raiser(*a, **kw):
        raise GoogleAdsApiError(message, code=code, resource_names=resource_names)
    return raiser


# ---- accounts ----------------------------------------------------------------

def test_accounts_returns_mock_accounts_and_caches(app, signed_in):
    r = signed_in.get("/api/google-ads/accounts")
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    assert [a["id"] for a in body["accounts"]] == ["1234567890", MCC_ID, "5555555555"]
    with app.app_context():
        assert f"accounts-{OWNER}" in get_cache("accounts")


def test_accounts_served_from_cache_until_cleared(signed_in, monkeypatch):
    signed_in.get("/api/google-ads/accounts")
    monkeypatch.setattr(GoogleAdsApiClient, "get_mcc_accounts", fail("should not be called"))
    assert signed_in.get("/api/google-ads/accounts").status_code == 200

    monkeypatch.setattr(GoogleAdsApiClient, "list_accessible_customers", fail("down"))
    r = signed_in.get("/api/google-ads/accounts?clear_cache=true")
    assert r.status_code == 500


def test_accounts_fall_back_to_listed_customers_when_describe_fails(signed_in, monkeypatch):
    names = ["customers/1234567890", f"customers/{MCC_ID}"]
    monkeypatch.setattr(GoogleAdsApiClient, "get_mcc_accounts", fail("describe failed", "DESCRIBE_FAILED", names))
    monkeypatch.setattr(GoogleAdsApiClient, "list_accessible_customers", fail("should not be called"))
    body = signed_in.get("/api/google-ads/accounts").get_json()
    assert "accounts" not in body
    assert [c["id"] for c in body["customers"]] == ["1234567890", MCC_ID]


def test_accounts_failure_body(signed_in, monkeypatch):
    monkeypatch.setattr(GoogleAdsApiClient, "get_mcc_accounts", fail("token revoked", "INVALID_REFRESH_TOKEN"))
    r = signed_in.get("/api/google-ads/accounts")
    assert r.status_code == 500
    body = r.get_json()
    assert body["error"] == "Failed to fetch Google Ads accounts after multiple attempts"
    assert body["details"] == "token revoked"
    assert body["code"] == "INVALID_REFRESH_TOKEN"
    assert "timestamp" in body


def test_accounts_validate_token_once_on_failure(signed_in, real_credentials, monkeypatch):
    checks = []

    def invalid(*a):
        checks.append(a)
        return TokenCheck(valid=False, error="invalid_grant")

    monkeypatch.setattr("mccdash.google.ads_client.validate_refresh_token", invalid)
    r = signed_in.get("/api/google-ads/accounts")
    assert r.status_code == 500
    assert r.get_json()["code"] == "INVALID_REFRESH_TOKEN"
    assert len(checks) == 1


# ---- hierarchy ---------------------------------------------------------------

def test_hierarchy_requires_mcc_id(signed_in):
    r = signed_in.get("/api/google-ads/accounts/hierarchy")
    assert r.status_code == 400
    assert r.get_json() == {"error": "Missing mccId parameter"}


def test_hierarchy_unknown_mcc(signed_in):
    r = signed_in.get("/api/google-ads/accounts/hierarchy?mccId=1112223333")
    assert r.status_code == 404
    assert r.get_json()["code"] == "MCC_NOT_FOUND"


def test_hierarchy_lists_sub_accounts_and_caches(signed_in):
    body = signed_in.get(f"/api/google-ads/accounts/hierarchy?mccId={MCC_ID}").get_json()
    assert body["mccAccount"]["id"] == MCC_ID
    assert body["mccAccount"]["isMCC"] is True
    assert [a["id"] for a in body["subAccounts"]] == ["5555555555"]
    assert "cached" not in body

    again = signed_in.get(f"/api/google-ads/accounts/hierarchy?mccId={MCC_ID}").get_json()
    assert again["cached"] is True

    fresh = signed_in.get(f"/api/google-ads/accounts/hierarchy?mccId={MCC_ID}&clear_cache=true").get_json()
    assert "cached" not in fresh


def test_hierarchy_debug_block(signed_in):
    body = signed_in.get(f"/api/google-ads/accounts/hierarchy?mccId={MCC_ID}&debug=true").get_json()
    assert body["debug"]["mccId"] == MCC_ID
    assert body["debug"]["mockMode"] is True
    assert body["debug"]["subAccountCount"] == 1


def test_hierarchy_partial_failures_are_warnings_and_not_cached(signed_in, monkeypatch):
    monkeypatch.setattr(GoogleAdsApiClient, "get_mcc_accounts", fail("mcc lookup failed"))
    monkeypatch.setattr(GoogleAdsApiClient, "get_sub_accounts", fail("sub lookup failed"))
    body = signed_in.get(f"/api/google-ads/accounts/hierarchy?mccId={MCC_ID}").get_json()
    assert body["success"] is True
    assert body["mccAccount"]["displayName"] == f"MCC Account {MCC_ID}"
    assert body["subAccounts"] == []
    assert body["warnings"] == {"mccAccountsError": "mcc lookup failed", "subAccountsError": "sub lookup failed"}

    again = signed_in.get(f"/api/google-ads/accounts/hierarchy?mccId={MCC_ID}").get_json()
    assert "cached" not in again


# ---- campaigns ---------------------------------------------------------------

def test_create_campaign_rejects_non_json(signed_in):
    r = signed_in.post("/api/google-ads/campaigns", data="name=x")
    assert r.status_code == 400


def test_create_campaign_validation_errors(signed_in):
    r = signed_in.post("/api/google-ads/campaigns", json=campaign_payload(headlines=["one"], budget=0))
    assert r.status_code == 400
    body = r.get_json()
    assert body["errors"]["headlines"] == ["Exactly 10 headlines are required"]
    assert body["errors"]["budget"] == ["Budget must be at least 1"]


def test_create_campaign_mock(signed_in):
    r = signed_in.post("/api/google-ads/campaigns", json=campaign_payload())
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    assert body["campaignId"].startswith("Campaign_MOCK_")


def test_create_campaign_ads_failure(signed_in, monkeypatch):
    monkeypatch.setattr(GoogleAdsApiClient, "create_search_campaign", fail("budget too low", "CAMPAIGN_CREATE_FAILED"))
    r = signed_in.post("/api/google-ads/campaigns", json=campaign_payload())
    assert r.status_code == 500
    assert r.get_json()["code"] == "CAMPAIGN_CREATE_FAILED"


def test_create_campaign_sdk_failure_is_json(signed_in, real_credentials, monkeypatch):
    monkeypatch.setattr("mccdash.google.ads_client.client_from_refresh", no_sdk)
    r = signed_in.post("/api/google-ads/campaigns", json=campaign_payload())
    assert r.status_code == 500
    body = r.get_json()
    assert body["code"] == "CAMPAIGN_CREATE_FAILED"
    assert body["diagnosticReport"]["error"] == "sdk unavailable"


# ---- debug -------------------------------------------------------------------

def test_full_account_list(signed_in):
    body = signed_in.get(f"/api/google-ads/debug/full-account-list?mccId={MCC_ID}").get_json()
    assert body["mccId"] == MCC_ID
    assert body["totalAccounts"] == 2


def test_debug_logs_for_admin(signed_in):
    signed_in.get(f"/api/google-ads/accounts/hierarchy?mccId={MCC_ID}")
    r = signed_in.get("/api/debug/logs?context=hierarchy-api")
    assert r.status_code == 200
    body = r.get_json()
    assert body["count"] == len(body["logs"]) > 0
    assert all(e["context"].startswith("hierarchy-api") for e in body["logs"])
    assert "inMemoryLogCount" in body["loggerStatus"]


@pytest.mark.parametrize("environment, allowed", [("production", False), ("development", True)])
def test_debug_logs_gate_for_other_users(client, monkeypatch, app, environment, allowed):
    app.config["ENVIRONMENT"] = environment
    sign_in(client, monkeypatch, email="someone@example.com")
    r = client.get("/api/debug/logs")
    assert r.status_code == (200 if allowed else 403)
    if not allowed:
        assert r.get_json() == {"error": "Unauthorized"}


def test_debug_timeout_check_in_mock_mode(signed_in):
    body = signed_in.get("/api/debug/google-ads-timeout").get_json()
    assert body["success"] is True
    assert body["accountsFound"] == 3
    assert body["accounts"] == ["1234567890", MCC_ID, "5555555555"]


def test_debug_connectivity(signed_in, monkeypatch):
    def fake_get(url, params=None, timeout=None):
        if "tokeninfo" in url:
            return SimpleNamespace(ok=True, status_code=200, json=lambda: {"scope": "openid https://www.googleapis.com/auth/adwords"})
        if "googleads" in url:
            return SimpleNamespace(ok=False, status_code=401, json=lambda: {})
        return SimpleNamespace(ok=True, status_code=200, json=lambda: {})

    monkeypatch.setattr("mccdash.api.debug.requests.get", fake_get)
    body = signed_in.get("/api/debug/google-ads").get_json()
    tests = {t["name"]: t for t in body["tests"]}
    assert tests["Google API"]["success"] is True
    assert "https://www.googleapis.com/auth/adwords" in tests["OAuth token"]["scopes"]
    assert tests["Google Ads API endpoint"]["success"] is True
    # test credentials are deliberately short
    assert tests["Environment variables"]["success"] is False
    assert body["overallSuccess"] is False
    assert body["mockMode"] is True
