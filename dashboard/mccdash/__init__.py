# mccdash/__init__.py
from __future__ import annotations

import logging
import os
import secrets
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, flash, g, jsonify, redirect, request, url_for
from flask_wtf.csrf import CSRFError
from markupsafe import escape
from werkzeug.exceptions import HTTPException

from mccdash.cache import init_caches
from mccdash.config import Config
from mccdash.extensions import csrf, limiter, login_manager

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _configure_logging(app: Flask) -> None:
    from mccdash.monitoring.server_log import attach_memory_handler, configure_file_logging, memory_handler

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.INFO)
    stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # the "mccdash" logger outlives each app; drop the previous app's handlers
    for old in list(app.logger.handlers):
        app.logger.removeHandler(old)
        if old is not memory_handler:
            old.close()
    app.logger.addHandler(stderr_handler)
    app.logger.setLevel(logging.INFO)
    app.logger.propagate = False

    log_path = app.config.get("APP_ERROR_LOG")
    if log_path:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(log_path)), exist_ok=True)
            file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        except OSError as e:
            app.logger.warning(f"App log file disabled ({log_path}): {e}")
        else:
            file_handler.setLevel(logging.INFO)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            app.logger.addHandler(file_handler)

    # debug endpoints read from here
    attach_memory_handler(app.logger)
    if app.config.get("FILE_LOGGING"):
        configure_file_logging(app.logger, app.config.get("LOG_DIR") or None)


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=False)

    # ---- Config -------------------------------------------------------------
    app.config.from_object(Config)
    cfg_env = os.getenv("APP_CONFIG_FILE")
    if cfg_env and Path(cfg_env).exists():
        app.config.from_pyfile(cfg_env)
    if config_overrides:
        app.config.update(config_overrides)

    # ---- Logging (stderr + rotating file + in-memory ring) ------------------
    _configure_logging(app)
    if cfg_env:
        app.logger.info(f"Loaded config from APP_CONFIG_FILE={cfg_env}")

    from mccdash.google.ads_client import AdsSettings
    ads_settings = AdsSettings.from_config(app.config)
    app.logger.info(
        "Ads config: dev_token_len=%s, api_version=%s, mock_mode=%s",
        len(ads_settings.developer_token),
        ads_settings.api_version,
        ads_settings.mock_mode,
    )

    # ---- Extensions ---------------------------------------------------------
    csrf.init_app(app)
    limiter.init_app(app)
    init_caches(app)

    from mccdash.auth.session_utils import load_session_user, unauthorized
    login_manager.init_app(app)
    login_manager.login_view = "auth_bp.login"
    login_manager.session_protection = app.config.get("SESSION_PROTECTION", "strong")
    login_manager.user_loader(load_session_user)
    login_manager.unauthorized_handler(unauthorized)

    from mccdash.monitoring import init_sentry
    init_sentry(app)

    # ---- Jinja globals ------------------------------------------------------
    @app.context_processor
    def inject_globals():
        return {
            "app_name": app.config.get("APP_NAME", "MCC Dashboard"),
            "year": datetime.now().year,
            "mock_mode": ads_settings.mock_mode,
        }

    # ---- Security headers (nonce + CSP) ------------------------------------
    @app.before_request
    def _set_nonce():
        g.csp_nonce = secrets.token_urlsafe(16)

    @app.after_request
    def _security_headers(resp):
        nonce = getattr(g, "csp_nonce", "")
        resp.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if app.config.get("PREFERRED_URL_SCHEME", "https") == "https":
            resp.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        resp.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=(), payment=()")
        resp.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'self'; "
            "img-src 'self' data: https:; "
            "style-src 'self' 'unsafe-inline'; "
            f"script-src 'self' 'nonce-{nonce}' https://cdn.tailwindcss.com; "
            "connect-src 'self'; frame-ancestors 'self'; base-uri 'self'; "
            "form-action 'self' https://accounts.google.com"
        )
        return resp

    # ---- Register blueprints -----------------------------------------------
    from mccdash.auth import auth_bp
    app.register_blueprint(auth_bp)
    app.logger.info("auth_bp registered")

    from mccdash.views import main_bp
    app.register_blueprint(main_bp)
    app.logger.info("main_bp registered")

    from mccdash.api import api_bp
    app.register_blueprint(api_bp)
    csrf.exempt(api_bp)
    app.logger.info("api_bp registered")

    from mccdash.api.debug import debug_bp
    app.register_blueprint(debug_bp)
    csrf.exempt(debug_bp)
    app.logger.info("debug_bp registered")

    # ---- Diagnostics --------------------------------------------------------
    @app.route("/__routes__")
    def __routes__():
        lines = []
        for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
            methods = ",".join(sorted(m for m in rule.methods if m not in ("HEAD", "OPTIONS")))
            lines.append(f"{rule.rule} -> {rule.endpoint} [{methods}]")
        return "<pre>" + escape("\n".join(lines)) + "</pre>"

    @app.route("/__health__")
    @limiter.exempt
    def __health__():
        return jsonify({"ok": True, "mockMode": ads_settings.mock_mode}), 200

    # ---- Error handlers -----------------------------------------------------
    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF failed: {getattr(e, 'description', str(e))}")
        flash("Your session expired or the form was invalid. Please try again.", "error")
        return redirect(request.referrer or url_for("main_bp.home"))

    @app.errorhandler(404)
    def _404(err):
        if request.path.startswith("/api/"):
            return jsonify({"error": "Not found", "path": request.path}), 404
        return (f"404 Not Found: {request.path}", 404)

    @app.errorhandler(Exception)
    def _500(err):
        if isinstance(err, HTTPException):
            return err
        app.logger.exception("Unhandled exception")
        from mccdash.monitoring import capture_exception
        capture_exception(err)
        if request.path.startswith("/api/"):
            return jsonify({"error": "Internal server error"}), 500
        return ("Internal Server Error", 500)

    return app
