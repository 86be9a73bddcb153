# mccdash/campaigns/validation.py
from __future__ import annotations

import math
import re
from typing import Any, Mapping, Optional

from mccdash.models import CampaignFormData, digits_only

# -------------------------
# Limits & messages (shared with CampaignForm)
# -------------------------

NAME_MAX = 100
BUDGET_MIN, BUDGET_MAX = 1, 10000
MAX_CPC_MIN, MAX_CPC_MAX = 0.01, 1000
HEADLINE_COUNT = 10
HEADLINE_MAX = 30
DESCRIPTION_MAX = 90
DESCRIPTIONS_LIMIT = 5

DEFAULT_BUDGET = 5
DEFAULT_MAX_CPC = 1

CUSTOMER_ID_REQUIRED = "Customer ID is required"
NAME_REQUIRED = "Campaign name is required"
NAME_TOO_LONG = "Campaign name must be less than 100 characters"
BUDGET_NOT_NUMBER = "Budget must be a number"
BUDGET_TOO_LOW = "Budget must be at least 1"
BUDGET_TOO_HIGH = "Budget must be less than 10,000"
MAX_CPC_NOT_NUMBER = "Max CPC must be a number"
MAX_CPC_TOO_LOW = "Max CPC must be at least 0.01"
MAX_CPC_TOO_HIGH = "Max CPC must be less than 1,000"
HEADLINES_COUNT = "Exactly 10 headlines are required"
HEADLINE_EMPTY = "Headlines cannot be empty"
HEADLINE_TOO_LONG = "Headlines must be 30 characters or less"
DESCRIPTIONS_REQUIRED = "At least one description is required"
DESCRIPTIONS_TOO_MANY = "No more than 5 descriptions are allowed"
DESCRIPTION_EMPTY = "Descriptions cannot be empty"
DESCRIPTION_TOO_LONG = "Descriptions must be 90 characters or less"
FINAL_URL_INVALID = "Final URL must start with http:// or https://"

_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


class CampaignValidationError(ValueError):
    """Carries per-field messages; str() is the first message."""

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        first = next((msgs[0] for msgs in errors.values() if msgs), "Invalid campaign data")
        super().__init__(first)


def parse_number(value: Any) -> Optional[float]:
    """Blank counts as 0; anything non-numeric is None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    if isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(n) or math.isinf(n) else n


# -------------------------
# Per-field rules; each returns an error message or None.
# CampaignForm runs these too.
# -------------------------

def check_name(name: str) -> Optional[str]:
    if not name:
        return NAME_REQUIRED
    if len(name) > NAME_MAX:
        return NAME_TOO_LONG
    return None


def _check_range(value: Any, low: float, high: float, not_number: str, too_low: str, too_high: str) -> Optional[str]:
    n = parse_number(value)
    if n is None:
        return not_number
    if n < low:
        return too_low
    if n > high:
        return too_high
    return None


def check_budget(value: Any) -> Optional[str]:
    return _check_range(value, BUDGET_MIN, BUDGET_MAX, BUDGET_NOT_NUMBER, BUDGET_TOO_LOW, BUDGET_TOO_HIGH)


def check_max_cpc(value: Any) -> Optional[str]:
    return _check_range(value, MAX_CPC_MIN, MAX_CPC_MAX, MAX_CPC_NOT_NUMBER, MAX_CPC_TOO_LOW, MAX_CPC_TOO_HIGH)


def check_headline(text: str) -> Optional[str]:
    if not text:
        return HEADLINE_EMPTY
    if len(text) > HEADLINE_MAX:
        return HEADLINE_TOO_LONG
    return None


def check_description(text: str) -> Optional[str]:
    if not text:
        return DESCRIPTION_EMPTY
    if len(text) > DESCRIPTION_MAX:
        return DESCRIPTION_TOO_LONG
    return None


def check_final_url(url: Optional[str]) -> Optional[str]:
    if url and not _URL_RE.match(url):
        return FINAL_URL_INVALID
    return None


def _text_list(value: Any) -> Optional[list[str]]:
    if not isinstance(value, (list, tuple)):
        return None
    return ["" if v is None else str(v).strip() for v in value]


def validate_campaign_data(payload: Mapping[str, Any]) -> CampaignFormData:
    """
    Validate a campaign submission (camelCase JSON keys).

    Returns a CampaignFormData or raises CampaignValidationError with
    a {field: [messages]} map.
    """
    errors: dict[str, list[str]] = {}

    def err(field: str, msg: Optional[str]) -> None:
        if not msg:
            return
        bucket = errors.setdefault(field, [])
        if msg not in bucket:
            bucket.append(msg)

    customer_id = digits_only(payload.get("customerId"))
    if not customer_id:
        err("customerId", CUSTOMER_ID_REQUIRED)

    name = str(payload.get("name") or "").strip()
    err("name", check_name(name))

    err("budget", check_budget(payload.get("budget")))
    err("maxCpc", check_max_cpc(payload.get("maxCpc")))

    headlines = _text_list(payload.get("headlines"))
    if headlines is None or len(headlines) != HEADLINE_COUNT:
        err("headlines", HEADLINES_COUNT)
    for h in headlines or []:
        err("headlines", check_headline(h))

    descriptions = _text_list(payload.get("descriptions"))
    if not descriptions:
        err("descriptions", DESCRIPTIONS_REQUIRED)
    elif len(descriptions) > DESCRIPTIONS_LIMIT:
        err("descriptions", DESCRIPTIONS_TOO_MANY)
    for d in descriptions or []:
        err("descriptions", check_description(d))

    final_url = str(payload.get("finalUrl") or "").strip() or None
    err("finalUrl", check_final_url(final_url))

    if errors:
        raise CampaignValidationError(errors)

    return CampaignFormData(
        customer_id=customer_id,
        name=name,
        budget=parse_number(payload.get("budget")),
        max_cpc=parse_number(payload.get("maxCpc")),
        headlines=headlines,
        descriptions=descriptions,
        final_url=final_url,
        mcc_id=digits_only(payload.get("mccId")) or None,
    )
