# mccdash/api/__init__.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from mccdash.auth.session_utils import refresh_token_required
from mccdash.campaigns import CampaignValidationError, validate_campaign_data
from mccdash.google.ads_client import GoogleAdsApiError
from mccdash.monitoring import capture_exception
from mccdash.services import accounts as account_service

api_bp = Blueprint("api_bp", __name__, url_prefix="/api/google-ads")


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in ("1", "true", "yes")


# ---- Accounts ----------------------------------------------------------------

@api_bp.get("/accounts", endpoint="accounts")
@login_required
@refresh_token_required
def accounts():
    try:
        payload = account_service.load_accounts(current_user, clear_cache=_flag("clear_cache"))
    except GoogleAdsApiError as e:
        current_app.logger.error("Account list failed for %s: %s", current_user.email, e)
        capture_exception(e, ads={"code": e.code, "sessionId": e.session_id})
        body = e.to_dict()
        body["error"] = "Failed to fetch Google Ads accounts after multiple attempts"
        body["details"] = str(e)
        return jsonify(body), 500
    return jsonify(payload)


@api_bp.get("/accounts/hierarchy", endpoint="hierarchy")
@login_required
@refresh_token_required
def hierarchy():
    mcc_id = (request.args.get("mccId") or "").strip()
    if not mcc_id:
        return jsonify({"error": "Missing mccId parameter"}), 400

    try:
        payload = account_service.load_hierarchy(
            current_user, mcc_id, clear_cache=_flag("clear_cache"), debug=_flag("debug")
        )
    except account_service.MccNotFound as e:
        return jsonify({"error": str(e), "code": "MCC_NOT_FOUND"}), 404
    except Exception as e:
        current_app.logger.exception("Hierarchy lookup failed for %s", mcc_id)
        capture_exception(e)
        return jsonify({
            "error": "Failed to fetch account hierarchy",
            "details": str(e),
            "code": getattr(e, "code", "HIERARCHY_ERROR"),
        }), 500
    return jsonify(payload)


# ---- Campaigns ---------------------------------------------------------------

@api_bp.post("/campaigns", endpoint="create_campaign")
@login_required
@refresh_token_required
def create_campaign():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400

    try:
        data = validate_campaign_data(payload)
    except CampaignValidationError as e:
        return jsonify({"error": str(e), "errors": e.errors}), 400

    try:
        result = account_service.create_campaign(current_user, data)
    except GoogleAdsApiError as e:
        current_app.logger.error("Campaign creation failed for %s: %s", data.customer_id, e)
        capture_exception(e)
        return jsonify(e.to_dict()), 500
    return jsonify(result)


# ---- Debug listing -----------------------------------------------------------

@api_bp.get("/debug/full-account-list", endpoint="full_account_list")
@login_required
@refresh_token_required
def full_account_list():
    mcc_id = (request.args.get("mccId") or "").strip()
    if not mcc_id:
        return jsonify({"error": "Missing mccId parameter"}), 400
    try:
        accounts = account_service.full_account_list(current_user, mcc_id)
    except GoogleAdsApiError as e:
        return jsonify(e.to_dict()), 500
    return jsonify({"mccId": mcc_id, "totalAccounts": len(accounts), "accounts": accounts})
