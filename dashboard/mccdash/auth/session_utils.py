# mccdash/auth/session_utils.py
from __future__ import annotations

from functools import wraps
from typing import Callable, Optional
from urllib.parse import urljoin, urlparse

from flask import jsonify, redirect, request, session, url_for
from flask_login import UserMixin, current_user

SESSION_USER_KEY = "google_user"


class SessionUser(UserMixin):
    """The signed-in Google user. Lives only in the signed session cookie."""

    def __init__(self, data: dict):
        self.email: str = (data.get("email") or "").lower()
        self.name: Optional[str] = data.get("name")
        self.picture: Optional[str] = data.get("picture")
        self.access_token: Optional[str] = data.get("access_token")
        self.refresh_token: Optional[str] = data.get("refresh_token")
        self.expires_at: Optional[int] = data.get("expires_at")

    def get_id(self) -> str:
        return self.email

    def to_session(self) -> dict:
        return {
            "email": self.email,
            "name": self.name,
            "picture": self.picture,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }


def load_session_user(user_id: str) -> Optional[SessionUser]:
    data = session.get(SESSION_USER_KEY)
    if not data or (data.get("email") or "").lower() != (user_id or "").lower():
        return None
    return SessionUser(data)


# ---------------------- Core helpers ----------------------

def is_safe_next_url(target: str) -> bool:
    """Prevent open redirects by ensuring 'next' stays on our host."""
    if not target:
        return False
    host_url = urlparse(request.host_url)
    redirect_url = urlparse(urljoin(request.host_url, target))
    return redirect_url.scheme in ("http", "https") and host_url.netloc == redirect_url.netloc


def wants_json() -> bool:
    return (
        request.path.startswith("/api/")
        or request.is_json
        or request.accept_mimetypes.best == "application/json"
    )


def unauthorized():
    """Flask-Login unauthorized handler: JSON 401 for API calls, login redirect otherwise."""
    if wants_json():
        return jsonify({"error": "Not authenticated"}), 401
    nxt = request.full_path if request.method == "GET" else ""
    return redirect(url_for("auth_bp.login", next=nxt if is_safe_next_url(nxt) else None))


# ---------------------- Public API ------------------------

def refresh_token_required(view: Callable) -> Callable:
    """The Ads API needs the offline refresh token captured at sign-in."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not getattr(current_user, "refresh_token", None):
            return jsonify({
                "error": "No refresh token available. Please sign in again.",
                "code": "MISSING_REFRESH_TOKEN",
            }), 401
        return view(*args, **kwargs)
    return wrapped
