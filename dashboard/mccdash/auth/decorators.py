from functools import wraps

from flask import current_app, jsonify
from flask_login import current_user


def debug_access_allowed() -> bool:
    """Development: anyone signed in. Elsewhere: only ADMIN_EMAIL."""
    if current_app.debug or current_app.config.get("ENVIRONMENT") == "development":
        return True
    admin = (current_app.config.get("ADMIN_EMAIL") or "").lower()
    return bool(admin) and current_user.is_authenticated and current_user.email == admin


def require_admin(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not debug_access_allowed():
            current_app.logger.warning("Debug endpoint denied for %s", getattr(current_user, "email", None))
            return jsonify({"error": "Unauthorized"}), 403
        return view(*args, **kwargs)
    return wrapped
