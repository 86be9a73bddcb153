# mccdash/api/debug.py
from __future__ import annotations

import time

import requests
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from mccdash.auth.decorators import require_admin
from mccdash.extensions import limiter
from mccdash.google.ads_client import AdsSettings
from mccdash.google.token_utils import TokenError, ensure_access_token, refresh_access_token
from mccdash.google.utils_ads import ads_api_base, list_accessible_customers
from mccdash.models import customer_id_from_resource, mock_accounts
from mccdash.monitoring.diagnostics import OperationTimeout, format_error, run_with_timeout
from mccdash.monitoring.server_log import get_logs_by_context, get_recent_logs, logger_status

debug_bp = Blueprint("debug_bp", __name__, url_prefix="/api/debug")

DISCOVERY_URL = "https://www.googleapis.com/discovery/v1/apis"
TOKENINFO_V2_URL = "https://oauth2.googleapis.com/tokeninfo"
TIMEOUT_TEST_SECONDS = 45
CONNECTIVITY_TIMEOUT = 10

REQUIRED_ENV = ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_ADS_DEVELOPER_TOKEN")


# ---- Logs --------------------------------------------------------------------

@debug_bp.get("/logs", endpoint="logs")
@login_required
@require_admin
def logs():
    context = request.args.get("context")
    limit = request.args.get("limit", 50, type=int)
    level = request.args.get("level")

    entries = get_logs_by_context(context, limit, level) if context else get_recent_logs(limit, level)
    return jsonify({"logs": entries, "count": len(entries), "loggerStatus": logger_status()})


# ---- Connectivity ------------------------------------------------------------

def _check(name: str, fn) -> dict:
    started = time.monotonic()
    try:
        ok, status, extra = fn()
        result = {"name": name, "success": ok, "status": status, **extra}
    except (requests.RequestException, TokenError) as e:
        result = {"name": name, "success": False, "status": None, "error": str(e)}
    result["durationMs"] = int((time.monotonic() - started) * 1000)
    return result


@debug_bp.get("/google-ads", endpoint="google_ads")
@login_required
@require_admin
@limiter.limit("10 per minute")
def google_ads_connectivity():
    cfg = current_app.config

    def google_api():
        r = requests.get(DISCOVERY_URL, timeout=CONNECTIVITY_TIMEOUT)
        return r.ok, r.status_code, {}

    def oauth_token():
        token = ensure_access_token(current_user)
        r = requests.get(TOKENINFO_V2_URL, params={"access_token": token}, timeout=CONNECTIVITY_TIMEOUT)
        scopes = (r.json().get("scope") or "").split() if r.ok else []
        return r.ok, r.status_code, {"scopes": scopes}

    def ads_endpoint():
        # unauthenticated on purpose: a 401 proves the endpoint is reachable
        url = f"{ads_api_base(cfg['GOOGLE_ADS_API_VERSION'])}/customers:listAccessibleCustomers"
        r = requests.get(url, timeout=CONNECTIVITY_TIMEOUT)
        return r.status_code == 401, r.status_code, {"expected": 401}

    def env_vars():
        lengths = {k: len(cfg.get(k) or "") for k in REQUIRED_ENV}
        ok = all(n > 10 for n in lengths.values())
        return ok, None, {"details": {k: n > 10 for k, n in lengths.items()}}

    tests = [
        _check("Google API", google_api),
        _check("OAuth token", oauth_token),
        _check("Google Ads API endpoint", ads_endpoint),
        _check("Environment variables", env_vars),
    ]
    return jsonify({
        "tests": tests,
        "overallSuccess": all(t["success"] for t in tests),
        "mockMode": AdsSettings.from_config(cfg).mock_mode,
    })


@debug_bp.get("/google-ads-timeout", endpoint="google_ads_timeout")
@login_required
@require_admin
@limiter.limit("5 per minute")
def google_ads_timeout():
    settings = AdsSettings.from_config(current_app.config)
    t0 = time.monotonic()
    markers: list[dict] = []

    def mark(label: str) -> None:
        markers.append({"label": label, "elapsedMs": int((time.monotonic() - t0) * 1000)})

    mark("start")
    if settings.mock_mode:
        names = [a.resource_name for a in mock_accounts()]
        mark("mock accounts returned")
    else:
        try:
            tj = refresh_access_token(current_user.refresh_token, settings.client_id, settings.client_secret)
            mark("access token refreshed")
            names = run_with_timeout(
                lambda: list_accessible_customers(
                    tj["access_token"],
                    settings.developer_token,
                    versions=settings.rest_versions,
                    timeout=TIMEOUT_TEST_SECONDS,
                ),
                TIMEOUT_TEST_SECONDS,
                "listAccessibleCustomers",
            )
            mark("response received")
        except (requests.RequestException, TokenError, OperationTimeout) as e:
            mark("failed")
            current_app.logger.error("Timeout test failed: %s", e)
            return jsonify({
                "success": False,
                "error": str(e),
                "errorDetail": format_error(e),
                "timeMarkers": markers,
            }), 500

    return jsonify({
        "success": True,
        "mockMode": settings.mock_mode,
        "timeMarkers": markers,
        "accountsFound": len(names),
        "accounts": [customer_id_from_resource(rn) for rn in names[:5]],
        "totalDurationMs": int((time.monotonic() - t0) * 1000),
    })
