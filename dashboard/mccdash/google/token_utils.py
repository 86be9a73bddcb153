# mccdash/google/token_utils.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import requests
from flask import current_app, session

log = logging.getLogger("mccdash.auth.tokens")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
GOOGLE_TOKENINFO_URL = "https://www.googleapis.com/oauth2/v1/tokeninfo"
ADWORDS_SCOPE = "https://www.googleapis.com/auth/adwords"

# consider an access token stale if it expires within 2 minutes
REFRESH_MARGIN_SECONDS = 120


class TokenError(RuntimeError):
    pass


@dataclass
class TokenCheck:
    valid: bool
    scopes: list = field(default_factory=list)
    error: Optional[str] = None
    access_token: Optional[str] = None


# ---- Authorization-code flow -------------------------------------------------

def exchange_code(code: str, redirect_uri: str) -> dict:
    data = {
        "code": code,
        "client_id": current_app.config.get("GOOGLE_CLIENT_ID"),
        "client_secret": current_app.config.get("GOOGLE_CLIENT_SECRET"),
        "redirect_uri": redirect_uri,
        "grant_type": "authorization_code",
    }
    resp = requests.post(GOOGLE_TOKEN_URL, data=data, timeout=10)
    resp.raise_for_status()
    return resp.json()


def fetch_userinfo(access_token: str) -> dict:
    resp = requests.get(
        GOOGLE_USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=10,
    )
    resp.raise_for_status()
    return resp.json()


# ---- Refresh-token grant -----------------------------------------------------

def refresh_access_token(refresh_token: str, client_id: str, client_secret: str, timeout: float = 15) -> dict:
    """Exchange a refresh token for {access_token, expires_in, ...}."""
    if not refresh_token:
        raise TokenError("No refresh token available.")
    if not client_id or not client_secret:
        raise TokenError("Google OAuth client not configured.")

    resp = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
        timeout=timeout,
    )
    if resp.status_code >= 400:
        log.error("Token refresh failed (%s): %s", resp.status_code, resp.text[:300])
    resp.raise_for_status()
    tj = resp.json()
    if not tj.get("access_token"):
        raise TokenError("Google refresh did not return an access_token.")
    return tj


def token_scopes(access_token: str, timeout: float = 10) -> list[str]:
    resp = requests.get(GOOGLE_TOKENINFO_URL, params={"access_token": access_token}, timeout=timeout)
    resp.raise_for_status()
    return (resp.json().get("scope") or "").split()


def validate_refresh_token(refresh_token: str, client_id: str, client_secret: str) -> TokenCheck:
    """
    Refresh the token, then ask tokeninfo which scopes it carries.
    Valid only when the Ads (adwords) scope was granted.
    """
    try:
        tj = refresh_access_token(refresh_token, client_id, client_secret)
        scopes = token_scopes(tj["access_token"])
    except (requests.RequestException, TokenError) as e:
        return TokenCheck(valid=False, error=str(e))

    if ADWORDS_SCOPE not in scopes:
        return TokenCheck(valid=False, scopes=scopes, error="Token is missing the Google Ads (adwords) scope")
    return TokenCheck(valid=True, scopes=scopes, access_token=tj["access_token"])


# ---- Session user ------------------------------------------------------------

def ensure_access_token(user) -> str:
    """
    Return a usable access token for the signed-in user, refreshing it
    (and updating the session) when it is missing or about to expire.
    """
    access = user.access_token
    expires_at = user.expires_at or 0
    if access and expires_at - time.time() > REFRESH_MARGIN_SECONDS:
        return access

    if not user.refresh_token:
        if access:
            return access
        raise TokenError("Google token expired and no refresh_token available.")

    tj = refresh_access_token(
        user.refresh_token,
        current_app.config.get("GOOGLE_CLIENT_ID"),
        current_app.config.get("GOOGLE_CLIENT_SECRET"),
    )
    user.access_token = tj["access_token"]
    user.expires_at = int(time.time()) + int(tj.get("expires_in") or 3600)

    stored = dict(session.get("google_user") or {})
    stored.update(access_token=user.access_token, expires_at=user.expires_at)
    session["google_user"] = stored
    log.info("Refreshed access token for %s", user.email)
    return user.access_token
