from conftest import no_sdk, sign_in


def campaign_form(**kw):
    data = {
        "customer_id": "1234567890",
        "name": "Spring Promo",
        "budget": "10",
        "max_cpc": "1.25",
        "descriptions-0": "Great prices on everything.",
        "final_url": "",
        "submit": "Create Campaign",
    }
    data.update({f"headlines-{i}": f"Headline {i}" for i in range(10)})
    data.update(kw)
    return data


def test_dashboard_requires_login(client):
    r = client.get("/dashboard")
    assert r.status_code == 302
    assert "/login" in r.headers["Location"]


def test_dashboard_lists_accounts(signed_in):
    r = signed_in.get("/dashboard")
    assert r.status_code == 200
    assert b"Test MCC Account" in r.data
    assert b"customerId=1234567890" in r.data


def test_dashboard_without_refresh_token_shows_error(client, monkeypatch):
    sign_in(client, monkeypatch, refresh_token=None)
    r = client.get("/dashboard")
    assert r.status_code == 200
    assert b"No refresh token available" in r.data


def test_campaign_form_sample_data(signed_in):
    r = signed_in.get("/dashboard/campaigns/new?sample=1")
    assert r.status_code == 200
    assert b"Spring Plumbing Promo" in r.data
    assert b'name="descriptions-1"' in r.data


def test_campaign_form_preselects_customer(signed_in):
    r = signed_in.get("/dashboard/campaigns/new?customerId=5555555555")
    assert b'<option selected value="5555555555">' in r.data


def test_campaign_form_limits_choices_to_mcc_children(signed_in):
    r = signed_in.get("/dashboard/campaigns/new?mccId=9876543210")
    assert b'value="5555555555"' in r.data
    assert b'value="1234567890"' not in r.data


def test_campaign_form_add_description(signed_in):
    data = campaign_form(add_description="Add description")
    del data["submit"]
    r = signed_in.post("/dashboard/campaigns/new", data=data)
    assert r.status_code == 200
    assert b'name="descriptions-1"' in r.data


def test_campaign_form_shows_errors(signed_in):
    r = signed_in.post("/dashboard/campaigns/new", data=campaign_form(name="", **{"headlines-3": "x" * 31}))
    assert r.status_code == 200
    assert b"Campaign name is required" in r.data
    assert b"Headlines must be 30 characters or less" in r.data


def test_campaign_form_creates_and_redirects(signed_in):
    r = signed_in.post("/dashboard/campaigns/new", data=campaign_form())
    assert r.status_code == 302
    assert "/dashboard/campaigns/success?id=Campaign_MOCK_" in r.headers["Location"]

    page = signed_in.get(r.headers["Location"])
    assert b"Campaign created" in page.data


def test_hierarchy_page(signed_in):
    r = signed_in.get("/accounts/hierarchy?mccId=9876543210")
    assert r.status_code == 200
    assert b"Sub Account 1" in r.data
    assert b"Test MCC Account" in r.data


def test_sample_submission_never_reaches_ads_api(signed_in, real_credentials, monkeypatch):
    monkeypatch.setattr("mccdash.google.ads_client.client_from_refresh", no_sdk)
    r = signed_in.post("/dashboard/campaigns/new?sample=1", data=campaign_form())
    assert r.status_code == 302
    assert "/dashboard/campaigns/success?id=Campaign_MOCK_" in r.headers["Location"]


def test_real_submission_failure_is_flashed(signed_in, real_credentials, monkeypatch):
    monkeypatch.setattr("mccdash.google.ads_client.client_from_refresh", no_sdk)
    monkeypatch.setattr("mccdash.services.accounts.load_accounts", lambda user, clear_cache=False: {"accounts": [], "success": True})
    r = signed_in.post("/dashboard/campaigns/new", data=campaign_form())
    assert r.status_code == 200
    assert b"Failed to create campaign" in r.data
