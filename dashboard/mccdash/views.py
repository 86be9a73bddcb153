# mccdash/views.py
from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from mccdash.campaigns.validation import DESCRIPTIONS_LIMIT
from mccdash.forms import CampaignForm
from mccdash.google.ads_client import GoogleAdsApiError
from mccdash.models import digits_only
from mccdash.services import accounts as account_service

main_bp = Blueprint("main_bp", __name__)

NO_REFRESH_TOKEN = "No refresh token available. Please sign out and sign in again."


def _account_label(a: dict) -> str:
    return f"{a.get('displayName') or 'Account ' + a['id']} ({a['id']})"


def _accounts_payload(sample: bool = False, clear_cache: bool = False) -> tuple[dict, str | None]:
    """(payload, error message). Never raises; pages render the error inline."""
    if sample:
        return account_service.sample_accounts_payload(), None
    if not current_user.refresh_token:
        return {}, NO_REFRESH_TOKEN
    try:
        return account_service.load_accounts(current_user, clear_cache=clear_cache), None
    except GoogleAdsApiError as e:
        current_app.logger.error("Dashboard account load failed for %s: %s", current_user.email, e)
        return {}, str(e)


# ----------------------
# Entry
# ----------------------
@main_bp.route("/", methods=["GET"], endpoint="home")
def home():
    if current_user.is_authenticated:
        return redirect(url_for("main_bp.dashboard"))
    return redirect(url_for("auth_bp.login"))


@main_bp.route("/dashboard", methods=["GET"], endpoint="dashboard")
@login_required
def dashboard():
    payload, error = _accounts_payload(clear_cache=request.args.get("refresh") == "1")
    return render_template(
        "dashboard/index.html",
        accounts=account_service.account_list(payload),
        error=error,
    )


# ----------------------
# Campaigns
# ----------------------
@main_bp.route("/dashboard/campaigns/new", methods=["GET", "POST"], endpoint="campaign_new")
@login_required
def campaign_new():
    sample = request.args.get("sample") == "1"
    form = CampaignForm()
    mcc_id = digits_only(form.mcc_id.data if request.method == "POST" else request.args.get("mccId"))

    payload, load_error = _accounts_payload(sample=sample)
    mcc_options = account_service.mcc_accounts_only(payload)
    try:
        account_options = account_service.sub_accounts_or_all(current_user, payload, mcc_id)
    except (GoogleAdsApiError, account_service.MccNotFound) as e:
        load_error = str(e)
        account_options = account_service.account_list(payload)

    form.customer_id.choices = [("", "Select an account")] + [(a["id"], _account_label(a)) for a in account_options]

    if request.method == "GET":
        form.mcc_id.data = mcc_id
        preselect = digits_only(request.args.get("customerId"))
        if preselect:
            form.customer_id.data = preselect
        if sample:
            form.fill_sample()
    elif form.add_description.data:
        if len(form.descriptions) < DESCRIPTIONS_LIMIT:
            form.descriptions.append_entry()
    elif form.validate_on_submit():
        data = form.to_campaign_data()
        try:
            result = account_service.create_campaign(current_user, data, sample=sample)
        except GoogleAdsApiError as e:
            current_app.logger.error("Campaign creation failed for %s: %s", data.customer_id, e)
            flash(str(e), "error")
        else:
            if result.get("warning"):
                flash(result["warning"], "warning")
            return redirect(url_for("main_bp.campaign_success", id=result.get("campaignId")))

    return render_template(
        "campaigns/new.html",
        form=form,
        mcc_options=mcc_options,
        mcc_id=mcc_id,
        sample=sample,
        load_error=load_error,
        descriptions_limit=DESCRIPTIONS_LIMIT,
    )


@main_bp.route("/dashboard/campaigns/success", methods=["GET"], endpoint="campaign_success")
@login_required
def campaign_success():
    return render_template("campaigns/success.html", campaign_id=request.args.get("id"))


# ----------------------
# Hierarchy
# ----------------------
@main_bp.route("/accounts/hierarchy", methods=["GET"], endpoint="hierarchy")
@login_required
def hierarchy():
    mcc_id = digits_only(request.args.get("mccId"))
    refresh = request.args.get("refresh") == "1"
    payload, error = _accounts_payload()
    hierarchy_data = None

    if mcc_id and current_user.refresh_token:
        try:
            hierarchy_data = account_service.load_hierarchy(current_user, mcc_id, clear_cache=refresh)
        except account_service.MccNotFound as e:
            error = str(e)
        except GoogleAdsApiError as e:
            current_app.logger.error("Hierarchy page failed for %s: %s", mcc_id, e)
            error = str(e)

    return render_template(
        "accounts/hierarchy.html",
        mcc_options=account_service.mcc_accounts_only(payload),
        mcc_id=mcc_id,
        hierarchy=hierarchy_data,
        error=error,
    )
