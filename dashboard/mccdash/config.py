import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _csv(name: str, default: str = "") -> tuple:
    return tuple(s.strip() for s in (os.environ.get(name) or default).split(",") if s.strip())


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "change-this")
    APP_NAME = os.environ.get("APP_NAME", "MCC Dashboard")
    ENVIRONMENT = os.environ.get("ENVIRONMENT", os.environ.get("FLASK_ENV", "production"))

    # Google sign-in (also used for the Ads refresh-token grant)
    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET", "")
    OAUTH_REDIRECT_URI = os.environ.get("OAUTH_REDIRECT_URI", "")
    GOOGLE_OAUTH_SCOPES = os.environ.get(
        "GOOGLE_OAUTH_SCOPES",
        "https://www.googleapis.com/auth/adwords openid email profile",
    )

    # Google Ads
    GOOGLE_ADS_DEVELOPER_TOKEN = os.environ.get("GOOGLE_ADS_DEVELOPER_TOKEN", "").strip()
    GOOGLE_ADS_API_VERSION = os.environ.get("GOOGLE_ADS_API_VERSION", "v21").strip() or "v21"
    GOOGLE_ADS_FALLBACK_VERSIONS = _csv("GOOGLE_ADS_FALLBACK_VERSIONS", "v20")
    GOOGLE_ADS_FALLBACK_ACCOUNT_IDS = _csv("GOOGLE_ADS_FALLBACK_ACCOUNT_IDS")
    GOOGLE_ADS_TIMEOUT_SECONDS = float(os.environ.get("GOOGLE_ADS_TIMEOUT_SECONDS", "55"))
    GOOGLE_ADS_REST_TIMEOUT_SECONDS = float(os.environ.get("GOOGLE_ADS_REST_TIMEOUT_SECONDS", "30"))

    ACCOUNT_CACHE_TTL_SECONDS = int(os.environ.get("ACCOUNT_CACHE_TTL_SECONDS", "3600"))

    # Debug endpoints outside development are limited to this user
    ADMIN_EMAIL = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()

    # Logging
    APP_ERROR_LOG = os.environ.get("APP_ERROR_LOG", os.path.join(os.path.expanduser("~"), "mccdash_error.log"))
    LOG_DIR = os.environ.get("LOG_DIR", "")
    FILE_LOGGING = os.environ.get("FILE_LOGGING", "true").lower() in ("1", "true", "yes", "on")

    # Rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = os.environ.get("RATELIMIT_ENABLED", "true").lower() in ("1", "true", "yes", "on")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")

    # Cookies & session
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.environ.get("HTTPS", "on").lower() in ("on", "1", "true", "yes")
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    PREFERRED_URL_SCHEME = os.environ.get("PREFERRED_URL_SCHEME", "https")
    SESSION_PROTECTION = os.environ.get("SESSION_PROTECTION", "strong")

    # Sentry error tracking and monitoring
    SENTRY_DSN = os.environ.get("SENTRY_DSN", "")
    SENTRY_ENVIRONMENT = os.environ.get("SENTRY_ENVIRONMENT", os.environ.get("ENVIRONMENT", "production"))
    SENTRY_RELEASE = os.environ.get("SENTRY_RELEASE", os.environ.get("GIT_COMMIT", "unknown"))
    SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get("SENTRY_TRACES_SAMPLE_RATE", "0.1"))  # 10% of requests
    SENTRY_SAMPLE_RATE = float(os.environ.get("SENTRY_SAMPLE_RATE", "1.0"))
