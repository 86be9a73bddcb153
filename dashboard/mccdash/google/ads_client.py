# mccdash/google/ads_client.py
"""
Google Ads account discovery with layered fallbacks.

Each public call tries its strategies in order and records what happened in
its own DiagnosticTracer:

  accessible customers : token check -> REST listAccessibleCustomers -> SDK CustomerService
  MCC accounts         : accessible customers (+ GAQL describe) -> configured fallback ids
  sub-accounts         : SDK GAQL (direct children, then all clients) -> REST searchStream
                         -> accessible customers -> configured fallback ids

When the developer token or OAuth client credentials are missing (or too short
to be real) the client runs in mock mode and serves MOCK_CUSTOMER_ACCOUNTS.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import requests
from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException

from mccdash.google import campaigns as campaign_builder
from mccdash.google import gaql_queries as q
from mccdash.google.token_utils import refresh_access_token, validate_refresh_token
from mccdash.google.utils_ads import google_ads_search, list_accessible_customers as rest_list_accessible
from mccdash.models import (
    CampaignFormData,
    CustomerAccount,
    customer_id_from_resource,
    digits_only,
    mock_accounts,
)
from mccdash.monitoring.diagnostics import DiagnosticTracer, format_error
from mccdash.monitoring.server_log import LogSession, create_log_session

log = logging.getLogger("mccdash.google_ads")

MIN_CREDENTIAL_LENGTH = 10


class GoogleAdsApiError(RuntimeError):
    """An Ads operation failed after every strategy; carries the diagnostic report."""

    def __init__(
        self,
        message: str,
        code: str = "GOOGLE_ADS_API_ERROR",
        details: Any = None,
        diagnostic_report: Optional[dict] = None,
        session_id: Optional[str] = None,
        resource_names: Optional[list] = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details if details is not None else message
        self.diagnostic_report = diagnostic_report
        self.session_id = session_id
        # accessible customers already listed before the failure, if any
        self.resource_names = resource_names
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "details": self.details,
            "code": self.code,
            "timestamp": self.timestamp,
            "sessionId": self.session_id,
            "diagnosticReport": self.diagnostic_report,
        }


@dataclass(frozen=True)
class AdsSettings:
    developer_token: str = ""
    client_id: str = ""
    client_secret: str = ""
    api_version: str = "v21"
    fallback_versions: tuple = ("v20",)
    fallback_account_ids: tuple = ()
    timeout: float = 55.0
    rest_timeout: float = 30.0

    @classmethod
    def from_config(cls, config) -> "AdsSettings":
        return cls(
            developer_token=(config.get("GOOGLE_ADS_DEVELOPER_TOKEN") or "").strip(),
            client_id=(config.get("GOOGLE_CLIENT_ID") or "").strip(),
            client_secret=(config.get("GOOGLE_CLIENT_SECRET") or "").strip(),
            api_version=config.get("GOOGLE_ADS_API_VERSION") or "v21",
            fallback_versions=tuple(config.get("GOOGLE_ADS_FALLBACK_VERSIONS") or ()),
            fallback_account_ids=tuple(
                digits_only(i) for i in (config.get("GOOGLE_ADS_FALLBACK_ACCOUNT_IDS") or ()) if digits_only(i)
            ),
            timeout=float(config.get("GOOGLE_ADS_TIMEOUT_SECONDS") or 55),
            rest_timeout=float(config.get("GOOGLE_ADS_REST_TIMEOUT_SECONDS") or 30),
        )

    @property
    def mock_mode(self) -> bool:
        return any(
            len(v or "") <= MIN_CREDENTIAL_LENGTH
            for v in (self.developer_token, self.client_id, self.client_secret)
        )

    @property
    def rest_versions(self) -> tuple:
        seen = []
        for v in (self.api_version, *self.fallback_versions):
            if v and v not in seen:
                seen.append(v)
        return tuple(seen)


def client_from_refresh(settings: AdsSettings, refresh_token: str, login_customer_id: Optional[str] = None) -> GoogleAdsClient:
    cfg = {
        "developer_token": settings.developer_token,
        "client_id": settings.client_id,
        "client_secret": settings.client_secret,
        "refresh_token": refresh_token,
        "use_proto_plus": True,
    }
    if login_customer_id:
        cfg["login_customer_id"] = digits_only(login_customer_id)
    return GoogleAdsClient.load_from_dict(cfg)


# ---- Row normalization -------------------------------------------------------

def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)


def client_info_from_sdk_row(row) -> dict:
    cc = row.customer_client
    return {
        "id": str(cc.id),
        "descriptive_name": cc.descriptive_name or None,
        "manager": bool(cc.manager),
        "level": int(cc.level),
        "currency_code": cc.currency_code or None,
        "time_zone": cc.time_zone or None,
        "status": _enum_name(getattr(cc, "status", None)),
    }


def client_info_from_rest_row(row: dict) -> dict:
    cc = row.get("customerClient") or {}
    return {
        "id": str(cc.get("id", "")),
        "descriptive_name": cc.get("descriptiveName") or None,
        "manager": bool(cc.get("manager", False)),
        "level": int(cc.get("level", 0)),
        "currency_code": cc.get("currencyCode") or None,
        "time_zone": cc.get("timeZone") or None,
        "status": cc.get("status"),
    }


def account_from_client_info(info: dict, parent_id: Optional[str]) -> CustomerAccount:
    return CustomerAccount.from_id(
        info["id"],
        display_name=info.get("descriptive_name") or f"Account {info['id']}",
        is_mcc=info.get("manager", False),
        parent_id=parent_id,
        level=info.get("level"),
        currency_code=info.get("currency_code"),
        time_zone=info.get("time_zone"),
    )


# ---- Client ------------------------------------------------------------------

SdkFactory = Callable[[AdsSettings, str, Optional[str]], Any]


class GoogleAdsApiClient:
    """Per-user Ads client. Not shared across requests."""

    def __init__(self, refresh_token: str, settings: AdsSettings, sdk_factory: Optional[SdkFactory] = None):
        self.refresh_token = refresh_token
        self.settings = settings
        self._sdk_factory = sdk_factory or client_from_refresh
        self._access_token: Optional[str] = None

    @property
    def mock_mode(self) -> bool:
        return self.settings.mock_mode

    # -- plumbing --

    def _sdk(self, login_customer_id: Optional[str] = None):
        return self._sdk_factory(self.settings, self.refresh_token, login_customer_id)

    def _access(self) -> str:
        if not self._access_token:
            tj = refresh_access_token(self.refresh_token, self.settings.client_id, self.settings.client_secret)
            self._access_token = tj["access_token"]
        return self._access_token

    def _sdk_search(self, customer_id: str, query: str, login_customer_id: Optional[str] = None) -> list:
        cid = digits_only(customer_id)
        service = self._sdk(login_customer_id or cid).get_service("GoogleAdsService")
        return list(service.search(customer_id=cid, query=query, timeout=self.settings.timeout))

    def _rest_search(self, customer_id: str, query: str) -> list[dict]:
        return google_ads_search(
            self._access(),
            self.settings.developer_token,
            customer_id,
            query,
            login_customer_id=customer_id,
            version=self.settings.api_version,
            timeout=self.settings.rest_timeout,
        )

    def _failure(
        self,
        message: str,
        exc: BaseException,
        tracer: DiagnosticTracer,
        session: LogSession,
        code: str = "GOOGLE_ADS_API_ERROR",
        reason: Optional[str] = None,
        details: Any = None,
        resource_names: Optional[list] = None,
    ) -> GoogleAdsApiError:
        report = tracer.end(exc)
        session.end("error", {"error": str(exc)})
        log.error("%s: %s", message, exc, extra={"context": "google-ads", "data": {"code": code}})
        if isinstance(exc, GoogleAdsApiError):
            code = exc.code if code == "GOOGLE_ADS_API_ERROR" else code
        return GoogleAdsApiError(
            f"{message}: {reason or exc}",
            code=code,
            details=details if details is not None else format_error(exc),
            diagnostic_report=report,
            session_id=session.session_id,
            resource_names=resource_names,
        )

    # -- accessible customers --

    def list_accessible_customers(self) -> list[str]:
        """Resource names of every account the signed-in user can access directly."""
        if self.mock_mode:
            log.info("Mock mode: returning mock accessible customers")
            return [a.resource_name for a in mock_accounts()]

        tracer = DiagnosticTracer("list_accessible_customers").start(int(self.settings.timeout * 1000))
        session = create_log_session("accessible-customers")
        try:
            tracer.add_trace("token", "Validating refresh token")
            check = validate_refresh_token(self.refresh_token, self.settings.client_id, self.settings.client_secret)
            if not check.valid:
                raise GoogleAdsApiError(f"Invalid refresh token: {check.error}", code="INVALID_REFRESH_TOKEN")
            self._access_token = check.access_token
            tracer.add_trace("token", "Refresh token valid", {"scopes": check.scopes})

            try:
                names = rest_list_accessible(
                    self._access(),
                    self.settings.developer_token,
                    versions=self.settings.rest_versions,
                    timeout=self.settings.rest_timeout,
                )
                tracer.add_trace("rest", "listAccessibleCustomers succeeded", {"count": len(names)})
                tracer.end()
                session.end("success", {"strategy": "rest", "count": len(names)})
                return names
            except (requests.RequestException, ValueError) as e:
                tracer.add_trace("rest", "listAccessibleCustomers failed", format_error(e))
                session.warning("Direct REST call failed, falling back to SDK", {"error": str(e)})

            service = self._sdk().get_service("CustomerService")
            response = service.list_accessible_customers(timeout=self.settings.timeout)
            names = list(response.resource_names)
            tracer.add_trace("sdk", "listAccessibleCustomers succeeded", {"count": len(names)})
            tracer.end()
            session.end("success", {"strategy": "sdk", "count": len(names)})
            return names
        except Exception as e:
            raise self._failure("Failed to fetch Google Ads accounts", e, tracer, session) from e

    # -- MCC accounts --

    def _describe(self, customer_id: str) -> CustomerAccount:
        try:
            rows = self._sdk_search(customer_id, q.CUSTOMER_DESCRIBE)
        except Exception as e:
            log.warning("Describe failed for %s, treating as potential manager: %s", customer_id, e)
            return CustomerAccount.from_id(customer_id, is_mcc=True)
        if not rows:
            return CustomerAccount.from_id(customer_id, is_mcc=True)
        c = rows[0].customer
        return CustomerAccount.from_id(
            customer_id,
            display_name=c.descriptive_name or f"Account {customer_id}",
            is_mcc=bool(c.manager),
            currency_code=c.currency_code or None,
            time_zone=c.time_zone or None,
        )

    def get_mcc_accounts(self) -> list[CustomerAccount]:
        if self.mock_mode:
            log.info("Mock mode: returning mock MCC accounts")
            return mock_accounts()

        tracer = DiagnosticTracer("get_mcc_accounts").start(int(self.settings.timeout * 1000))
        session = create_log_session("mcc-accounts")
        try:
            names = self.list_accessible_customers()
        except GoogleAdsApiError as e:
            tracer.add_trace("accessible", "Listing failed", format_error(e))
            fallback = self.settings.fallback_account_ids
            if not fallback:
                raise self._failure("Failed to fetch MCC accounts", e, tracer, session) from e
            log.warning("Using configured fallback account ids: %s", ",".join(fallback))
            tracer.add_trace("fallback", "Using configured fallback account ids", {"ids": list(fallback)})
            tracer.end()
            session.end("fallback", {"count": len(fallback)})
            return [CustomerAccount.from_id(i, is_mcc=True) for i in fallback]

        tracer.add_trace("accessible", "Listed accessible customers", {"count": len(names)})
        try:
            accounts = [self._describe(customer_id_from_resource(rn)) for rn in names]
        except Exception as e:
            raise self._failure(
                "Failed to describe accessible accounts", e, tracer, session,
                code="DESCRIBE_FAILED", resource_names=names,
            ) from e

        tracer.add_trace("describe", "Described accessible accounts", {"count": len(accounts)})
        tracer.end()
        session.end("success", {"count": len(accounts)})
        log.info("Resolved %s accessible accounts", len(accounts),
                 extra={"context": "google-ads", "data": {"ids": [a.id for a in accounts]}})
        return accounts

    # -- sub-accounts --

    def get_sub_accounts(self, mcc_id: str) -> list[CustomerAccount]:
        mcc_id = digits_only(mcc_id)
        if self.mock_mode:
            return [a for a in mock_accounts() if a.parent_id == mcc_id]

        tracer = DiagnosticTracer(f"get_sub_accounts:{mcc_id}").start(int(self.settings.timeout * 1000))
        session = create_log_session(f"sub-accounts-{mcc_id}")
        last_error: Optional[BaseException] = None

        strategies = (
            ("sdk", self._sub_accounts_via_sdk),
            ("rest", self._sub_accounts_via_rest),
            ("accessible", self._sub_accounts_via_accessible),
        )
        for name, strategy in strategies:
            try:
                subs = strategy(mcc_id, tracer)
            except Exception as e:
                last_error = e
                tracer.add_trace(name, "Strategy failed", format_error(e))
                session.warning(f"Sub-account strategy '{name}' failed", {"error": str(e)})
                continue
            tracer.end()
            session.end("success", {"strategy": name, "count": len(subs)})
            return subs

        fallback = [i for i in self.settings.fallback_account_ids if i != mcc_id]
        if fallback:
            tracer.add_trace("fallback", "Using configured fallback account ids", {"ids": fallback})
            tracer.end()
            session.end("fallback", {"count": len(fallback)})
            return [CustomerAccount.from_id(i, is_mcc=False, parent_id=mcc_id) for i in fallback]

        raise self._failure(
            f"Failed to fetch sub-accounts for MCC {mcc_id}",
            last_error or RuntimeError("no strategy succeeded"),
            tracer,
            session,
            code="SUB_ACCOUNTS_UNAVAILABLE",
        )

    def _sub_accounts_via_sdk(self, mcc_id: str, tracer: DiagnosticTracer) -> list[CustomerAccount]:
        rows = self._sdk_search(mcc_id, q.SUB_ACCOUNTS)
        infos = [client_info_from_sdk_row(r) for r in rows]
        tracer.add_trace("sdk", "Direct-children query returned", {"count": len(infos)})
        if not infos:
            rows = self._sdk_search(mcc_id, q.ALL_CUSTOMER_CLIENTS)
            infos = [client_info_from_sdk_row(r) for r in rows]
            infos = [i for i in infos if not i["manager"] and i["id"] != mcc_id]
            tracer.add_trace("sdk", "All-clients query returned", {"count": len(infos)})
        return [account_from_client_info(i, mcc_id) for i in infos]

    def _sub_accounts_via_rest(self, mcc_id: str, tracer: DiagnosticTracer) -> list[CustomerAccount]:
        rows = self._rest_search(mcc_id, q.SUB_ACCOUNTS)
        infos = [client_info_from_rest_row(r) for r in rows]
        infos = [i for i in infos if i["id"] and i["id"] != mcc_id]
        tracer.add_trace("rest", "searchStream returned", {"count": len(infos)})
        return [account_from_client_info(i, mcc_id) for i in infos]

    def _sub_accounts_via_accessible(self, mcc_id: str, tracer: DiagnosticTracer) -> list[CustomerAccount]:
        names = self.list_accessible_customers()
        subs = [
            CustomerAccount.from_resource_name(rn, is_mcc=False, parent_id=mcc_id)
            for rn in names
            if customer_id_from_resource(rn) != mcc_id
        ]
        tracer.add_trace("accessible", "Using accessible customers as sub-accounts", {"count": len(subs)})
        return subs

    # -- full listing (debug) --

    def get_full_account_list(self, mcc_id: str) -> list[dict]:
        mcc_id = digits_only(mcc_id)
        if self.mock_mode:
            infos = [
                {"id": a.id, "descriptive_name": a.display_name, "manager": bool(a.is_mcc),
                 "level": 0 if a.id == mcc_id else 1, "status": "ENABLED"}
                for a in mock_accounts()
                if a.id == mcc_id or a.parent_id == mcc_id
            ]
        else:
            tracer = DiagnosticTracer(f"get_full_account_list:{mcc_id}").start(int(self.settings.timeout * 1000))
            session = create_log_session(f"full-account-list-{mcc_id}")
            try:
                rows = self._sdk_search(mcc_id, q.ALL_CUSTOMER_CLIENTS)
            except Exception as e:
                tracer.add_trace("sdk", "customer_client listing failed", format_error(e))
                raise self._failure(f"Failed to list accounts under {mcc_id}", e, tracer, session) from e
            infos = [client_info_from_sdk_row(r) for r in rows]
            tracer.add_trace("sdk", "customer_client listing returned", {"count": len(infos)})
            tracer.end()
            session.end("success", {"count": len(infos)})

        accounts = [
            {
                "id": i["id"],
                "displayName": i.get("descriptive_name") or f"Account {i['id']}",
                "level": i.get("level", 0),
                "isMCC": bool(i.get("manager")),
                "status": i.get("status"),
            }
            for i in infos
        ]
        accounts.sort(key=lambda a: (a["level"], a["id"]))
        return accounts

    # -- campaigns --

    def create_search_campaign(self, data: CampaignFormData) -> dict:
        if self.mock_mode:
            return mock_campaign_result(data)

        tracer = DiagnosticTracer(f"create_search_campaign:{data.customer_id}").start(
            int(self.settings.timeout * 1000)
        )
        session = create_log_session(f"create-campaign-{data.customer_id}")
        try:
            client = self._sdk(data.mcc_id or data.customer_id)
            tracer.add_trace("sdk", "Submitting campaign mutate", {"adIncluded": campaign_builder.can_create_ad(data)})
            # the mutate is not idempotent: it gets a gRPC deadline, never a thread-side timeout
            result = campaign_builder.create_search_campaign(client, data, timeout=self.settings.timeout)
        except GoogleAdsException as e:
            messages = [err.message for err in e.failure.errors] if e.failure else []
            raise self._failure(
                "Failed to create campaign", e, tracer, session,
                code="CAMPAIGN_CREATE_FAILED",
                reason="; ".join(messages) or None,
                details={"requestId": e.request_id, "errors": messages},
            ) from e
        except Exception as e:
            raise self._failure("Failed to create campaign", e, tracer, session, code="CAMPAIGN_CREATE_FAILED") from e

        tracer.add_trace("sdk", "Campaign created", {"campaignId": result.get("campaignId")})
        tracer.end()
        session.end("success", {"campaignId": result.get("campaignId")})
        if not campaign_builder.can_create_ad(data):
            result["warning"] = "Ad not created: a final URL and at least two descriptions are required."
        return result


def mock_campaign_result(data: CampaignFormData) -> dict:
    log.info("Mock mode: pretending to create campaign %r for %s", data.name, data.customer_id)
    return {
        "success": True,
        "campaignId": f"Campaign_MOCK_{int(time.time() * 1000)}",
        "message": "Campaign created successfully (MOCK)",
    }
