# mccdash/auth/__init__.py
from __future__ import annotations

import secrets
import time
from urllib.parse import urlencode

import requests
from flask import Blueprint, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_user, logout_user

from mccdash.auth.session_utils import SESSION_USER_KEY, SessionUser, is_safe_next_url
from mccdash.extensions import limiter
from mccdash.google.token_utils import GOOGLE_AUTH_URL, exchange_code, fetch_userinfo
from mccdash.monitoring import add_breadcrumb

auth_bp = Blueprint("auth_bp", __name__)

STATE_KEY = "google_oauth_state"
NEXT_KEY = "google_oauth_next"


def _redirect_uri() -> str:
    explicit = current_app.config.get("OAUTH_REDIRECT_URI")
    if explicit:
        return explicit
    return url_for("auth_bp.oauth_callback", _external=True)


@auth_bp.route("/login", methods=["GET"], endpoint="login")
def login():
    if current_user.is_authenticated:
        return redirect(url_for("main_bp.dashboard"))
    nxt = request.args.get("next")
    if nxt and is_safe_next_url(nxt):
        session[NEXT_KEY] = nxt
    return render_template("auth/login.html")


@auth_bp.route("/auth/google", methods=["GET"], endpoint="google_start")
@limiter.limit("20 per minute")
def google_start():
    client_id = current_app.config.get("GOOGLE_CLIENT_ID")
    if not client_id:
        flash("Google sign-in is not configured (missing client ID).", "error")
        return redirect(url_for("auth_bp.login"))

    state = secrets.token_urlsafe(24)
    session[STATE_KEY] = state
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": _redirect_uri(),
        "scope": current_app.config["GOOGLE_OAUTH_SCOPES"],
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
        "state": state,
    }
    return redirect(f"{GOOGLE_AUTH_URL}?{urlencode(params)}")


@auth_bp.route("/auth/google/callback", methods=["GET"], endpoint="oauth_callback")
def oauth_callback():
    err = request.args.get("error")
    if err:
        flash(f"Google sign-in failed: {err}", "error")
        return redirect(url_for("auth_bp.login"))

    expected = session.pop(STATE_KEY, None)
    code = request.args.get("code")
    if not code or not expected or request.args.get("state") != expected:
        flash("Invalid Google callback. Please try again.", "error")
        return redirect(url_for("auth_bp.login"))

    try:
        token_json = exchange_code(code, _redirect_uri())
        profile = fetch_userinfo(token_json["access_token"])
    except (requests.RequestException, KeyError, ValueError) as e:
        current_app.logger.exception("Google token exchange failed")
        flash(f"Could not complete Google sign-in: {e}", "error")
        return redirect(url_for("auth_bp.login"))

    email = (profile.get("email") or "").lower()
    if not email:
        flash("Google did not return an email address.", "error")
        return redirect(url_for("auth_bp.login"))

    user = SessionUser({
        "email": email,
        "name": profile.get("name"),
        "picture": profile.get("picture"),
        "access_token": token_json.get("access_token"),
        "refresh_token": token_json.get("refresh_token"),
        "expires_at": int(time.time()) + int(token_json.get("expires_in") or 3600),
    })
    if not user.refresh_token:
        current_app.logger.warning("Google sign-in for %s returned no refresh token", email)

    session[SESSION_USER_KEY] = user.to_session()
    login_user(user)
    add_breadcrumb(f"Signed in {email}", category="auth")
    current_app.logger.info("User signed in: %s", email)

    nxt = session.pop(NEXT_KEY, None)
    if nxt and is_safe_next_url(nxt):
        return redirect(nxt)
    return redirect(url_for("main_bp.dashboard"))


@auth_bp.route("/logout", methods=["GET", "POST"], endpoint="logout")
def logout():
    email = getattr(current_user, "email", None)
    logout_user()
    session.clear()
    if email:
        current_app.logger.info("User signed out: %s", email)
    flash("You have been signed out.", "info")
    return redirect(url_for("auth_bp.login"))
