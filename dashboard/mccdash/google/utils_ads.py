# mccdash/google/utils_ads.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import requests

from mccdash.models import digits_only

log = logging.getLogger("mccdash.google_ads.rest")

ADS_API_HOST = "https://googleads.googleapis.com"


def ads_api_base(version: str) -> str:
    return f"{ADS_API_HOST}/{version}"


# ────────────────────────────────────────────────────────────────────────────
# Request headers
# ────────────────────────────────────────────────────────────────────────────

def ads_headers(access_token: str, developer_token: str, login_customer_id: Optional[str] = None) -> dict:
    """
    Build the Ads API headers.
    - Always include developer token + bearer.
    - Include login-customer-id ONLY when provided (MCC mode).
    """
    h = {
        "Authorization": f"Bearer {access_token}",
        "developer-token": developer_token,
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    if login_customer_id:
        h["login-customer-id"] = digits_only(login_customer_id)
    return h


# ────────────────────────────────────────────────────────────────────────────
# Google Ads “who can I access?” discovery
# ────────────────────────────────────────────────────────────────────────────

def list_accessible_customers(
    access_token: str,
    developer_token: str,
    versions: Iterable[str] = ("v21",),
    timeout: float = 30,
) -> List[str]:
    """
    GET customers:listAccessibleCustomers, trying each API version in turn.
    A 404 (retired version) falls through to the next; any other error is raised.
    Returns resource names: ["customers/1234567890", ...]
    """
    headers = ads_headers(access_token, developer_token)
    last_404: Optional[requests.Response] = None
    tried = []
    for ver in versions:
        url = f"{ads_api_base(ver)}/customers:listAccessibleCustomers"
        tried.append(ver)
        # MUST be GET with no body
        r = requests.get(url, headers=headers, timeout=timeout)
        if r.status_code == 404:
            log.warning("listAccessibleCustomers %s returned 404, trying next version", ver)
            last_404 = r
            continue
        try:
            r.raise_for_status()
        except requests.HTTPError:
            log.error("Ads listAccessibleCustomers failed (%s): %s", r.status_code, r.text[:500])
            raise
        j = r.json() or {}
        return list(j.get("resourceNames", []))

    raise requests.HTTPError(f"listAccessibleCustomers not found for versions {tried}", response=last_404)


# ────────────────────────────────────────────────────────────────────────────
# GAQL search (REST)
# ────────────────────────────────────────────────────────────────────────────

def google_ads_search(
    access_token: str,
    developer_token: str,
    customer_id: str | int,
    query: str,
    login_customer_id: Optional[str] = None,
    version: str = "v21",
    timeout: float = 60,
) -> List[dict]:
    """
    Execute a GAQL query through googleAds:searchStream.
    Returns the result rows (camelCase JSON) of every batch combined.
    """
    cid = digits_only(customer_id)
    headers = ads_headers(access_token, developer_token, login_customer_id)
    url = f"{ads_api_base(version)}/customers/{cid}/googleAds:searchStream"
    r = requests.post(url, headers=headers, json={"query": query}, timeout=timeout)
    r.raise_for_status()
    results: List[dict] = []
    for batch in r.json() or []:
        results.extend(batch.get("results", []))
    return results
