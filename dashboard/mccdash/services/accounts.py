# mccdash/services/accounts.py
"""
Account lookups shared by the JSON API and the HTML pages.

Both results are cached per user for ACCOUNT_CACHE_TTL_SECONDS:
  accounts-{email}            -> account list payload
  hierarchy-{mccId}-{email}   -> hierarchy payload (only when fetched without warnings)
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from flask import current_app

from mccdash.cache import accounts_key, get_cache, hierarchy_key
from mccdash.google.ads_client import AdsSettings, GoogleAdsApiClient, GoogleAdsApiError, mock_campaign_result
from mccdash.models import CampaignFormData, CustomerAccount, digits_only, mock_accounts

log = logging.getLogger("mccdash.accounts")


class MccNotFound(LookupError):
    def __init__(self, mcc_id: str):
        super().__init__(f"MCC account {mcc_id} not found")
        self.mcc_id = mcc_id


def ads_client_for(user) -> GoogleAdsApiClient:
    return GoogleAdsApiClient(user.refresh_token, AdsSettings.from_config(current_app.config))


def account_list(payload: dict) -> list[dict]:
    """Accounts from either payload shape ({accounts} or the {customers} fallback)."""
    return payload.get("accounts") or payload.get("customers") or []


def sample_accounts_payload() -> dict:
    return {"accounts": [a.to_dict() for a in mock_accounts()], "success": True, "sample": True}


# ---- Account list ------------------------------------------------------------

def load_accounts(user, clear_cache: bool = False) -> dict:
    cache = get_cache("accounts")
    key = accounts_key(user.email)
    if clear_cache:
        cache.delete(key)
    cached = cache.get(key)
    if cached is not None:
        log.info("Account list cache hit for %s", user.email, extra={"context": "api:accounts"})
        return cached

    client = ads_client_for(user)
    try:
        accounts = client.get_mcc_accounts()
        payload = {"accounts": [a.to_dict() for a in accounts], "success": True}
    except GoogleAdsApiError as e:
        if not e.resource_names:
            raise
        # listing worked but describing did not; serve the bare customer ids
        log.warning("Describing accounts failed, serving accessible customers: %s", e,
                    extra={"context": "api:accounts"})
        payload = {
            "customers": [CustomerAccount.from_resource_name(rn).to_dict() for rn in e.resource_names],
            "success": True,
        }

    log.info("Fetched %s accounts for %s", len(account_list(payload)), user.email,
             extra={"context": "api:accounts"})
    cache.set(key, payload)
    return payload


# ---- Hierarchy ---------------------------------------------------------------

def load_hierarchy(user, mcc_id: str, clear_cache: bool = False, debug: bool = False) -> dict:
    mcc_id = digits_only(mcc_id)
    cache = get_cache("hierarchy")
    key = hierarchy_key(mcc_id, user.email)

    if clear_cache:
        cache.delete(key)
        log.info("Hierarchy cache cleared for %s", mcc_id, extra={"context": "hierarchy-api"})
    else:
        cached = cache.get(key)
        if cached is not None:
            log.info("Hierarchy cache hit for %s", mcc_id, extra={"context": "hierarchy-api"})
            return dict(cached, cached=True)

    started = time.monotonic()
    client = ads_client_for(user)
    warnings: dict[str, str] = {}

    try:
        mcc_accounts = client.get_mcc_accounts()
    except GoogleAdsApiError as e:
        warnings["mccAccountsError"] = str(e)
        mcc_accounts = None

    if mcc_accounts is None:
        mcc = CustomerAccount.from_id(mcc_id, display_name=f"MCC Account {mcc_id}")
    else:
        mcc = next((a for a in mcc_accounts if a.id == mcc_id), None)
        if mcc is None:
            raise MccNotFound(mcc_id)
    mcc.is_mcc = True

    try:
        sub_accounts = client.get_sub_accounts(mcc_id)
    except GoogleAdsApiError as e:
        warnings["subAccountsError"] = str(e)
        sub_accounts = []

    payload = {
        "mccAccount": mcc.to_dict(),
        "subAccounts": [a.to_dict() for a in sub_accounts],
        "success": True,
    }
    if warnings:
        payload["warnings"] = warnings
    if debug:
        payload["debug"] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "mccId": mcc_id,
            "mockMode": client.mock_mode,
            "subAccountCount": len(sub_accounts),
            "durationMs": int((time.monotonic() - started) * 1000),
            "cacheKey": key,
        }

    log.info("Hierarchy for %s: %s sub-accounts", mcc_id, len(sub_accounts),
             extra={"context": "hierarchy-api", "data": {"warnings": warnings or None}})
    if not warnings:
        cache.set(key, payload)
    return payload


# ---- Campaigns ---------------------------------------------------------------

def create_campaign(user, data: CampaignFormData, sample: bool = False) -> dict:
    """Sample-mode submissions never reach the Ads API; they get the mock result."""
    if sample:
        result = mock_campaign_result(data)
    else:
        result = ads_client_for(user).create_search_campaign(data)
    log.info("Campaign %s created in %s", result.get("campaignId"), data.customer_id,
             extra={"context": "api:campaigns"})
    return result


def full_account_list(user, mcc_id: str) -> list[dict]:
    return ads_client_for(user).get_full_account_list(mcc_id)


def mcc_accounts_only(payload: dict) -> list[dict]:
    return [a for a in account_list(payload) if a.get("isMCC")]


def sub_accounts_or_all(user, payload: dict, mcc_id: Optional[str]) -> list[dict]:
    """Selector options: the MCC's sub-accounts when one is chosen, otherwise every account."""
    if not mcc_id:
        return account_list(payload)
    if payload.get("sample"):
        return [a.to_dict() for a in mock_accounts() if a.parent_id == digits_only(mcc_id)]
    return load_hierarchy(user, mcc_id).get("subAccounts", [])
