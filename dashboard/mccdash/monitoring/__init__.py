# mccdash/monitoring/__init__.py
"""
Error tracking and monitoring integration.

Provides:
- Sentry error tracking (enabled when SENTRY_DSN is set)
- Per-request user/endpoint context on Sentry events
- Manual capture helpers used by the API blueprints
"""
from __future__ import annotations

import os
from typing import Optional

import sentry_sdk
from flask import Flask, request
from flask_login import current_user
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration


def init_sentry(app: Flask) -> bool:
    """
    Initialize Sentry error tracking and performance monitoring.

    Args:
        app: Flask application instance

    Returns:
        True when Sentry was configured.
    """
    sentry_dsn = app.config.get("SENTRY_DSN") or os.getenv("SENTRY_DSN")

    if not sentry_dsn:
        app.logger.info("Sentry DSN not configured - error tracking disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FlaskIntegration(transaction_style="url"),
                LoggingIntegration(level=None, event_level=None),
            ],
            traces_sample_rate=app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.1),
            environment=app.config.get("SENTRY_ENVIRONMENT", "production"),
            release=app.config.get("SENTRY_RELEASE", "unknown"),
            send_default_pii=False,
            attach_stacktrace=True,
            max_breadcrumbs=50,
            sample_rate=app.config.get("SENTRY_SAMPLE_RATE", 1.0),
            before_send=before_send_event,
        )
    except Exception as e:
        app.logger.error(f"Failed to initialize Sentry: {e}", exc_info=True)
        return False

    app.logger.info(
        f"Sentry initialized (environment={app.config.get('SENTRY_ENVIRONMENT', 'production')}, "
        f"traces_sample_rate={app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1)})"
    )
    register_context_processors(app)
    return True


def before_send_event(event, hint):
    """Drop health-check noise and group events by exception type + message prefix."""
    if event.get("request", {}).get("url", "").endswith("/__health__"):
        return None

    values = event.get("exception", {}).get("values") or [{}]
    if values[0].get("type") == "NotFound":
        return None

    if "exception" in event:
        exc_type = values[0].get("type", "Unknown")
        exc_value = (values[0].get("value") or "")[:100]
        event["fingerprint"] = [exc_type, exc_value]

    return event


def register_context_processors(app: Flask):
    @app.before_request
    def add_sentry_context():
        if current_user.is_authenticated:
            sentry_sdk.set_user({"id": current_user.get_id(), "email": current_user.email})
        sentry_sdk.set_tag("endpoint", request.endpoint or "unknown")
        sentry_sdk.set_tag("request_method", request.method)


def capture_exception(error: BaseException, **extra_context):
    """
    Manually capture an exception to Sentry. A no-op when Sentry is not initialized.

    Args:
        error: Exception to capture
        **extra_context: Additional named context dicts
    """
    if extra_context:
        with sentry_sdk.new_scope() as scope:
            for key, value in extra_context.items():
                scope.set_context(key, value if isinstance(value, dict) else {"value": value})
            sentry_sdk.capture_exception(error)
    else:
        sentry_sdk.capture_exception(error)


def add_breadcrumb(message: str, category: str = "custom", level: str = "info", data: Optional[dict] = None):
    sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data or {})
