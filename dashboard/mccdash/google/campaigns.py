# mccdash/google/campaigns.py
from __future__ import annotations

import logging
from typing import Optional

from google.ads.googleads.client import GoogleAdsClient

from mccdash.models import CampaignFormData, digits_only

log = logging.getLogger("mccdash.google_ads.campaigns")

# Responsive search ad asset limits
RSA_MAX_HEADLINES = 15
RSA_MAX_DESCRIPTIONS = 4
RSA_MIN_DESCRIPTIONS = 2


def to_micros(amount: float) -> int:
    """Currency -> micros, rounded to the nearest cent (Ads rejects finer units)."""
    return int(round(float(amount) * 100)) * 10_000


def can_create_ad(data: CampaignFormData) -> bool:
    return bool(data.final_url) and len(data.descriptions) >= RSA_MIN_DESCRIPTIONS


def build_search_campaign_operations(client: GoogleAdsClient, customer_id: str, data: CampaignFormData) -> list:
    """
    One atomic batch: budget -> PAUSED search campaign (manual CPC) -> ad group -> RSA.
    Later operations reference earlier ones through temporary (negative) ids.
    """
    budget_rn = client.get_service("CampaignBudgetService").campaign_budget_path(customer_id, "-1")
    campaign_rn = client.get_service("CampaignService").campaign_path(customer_id, "-2")
    ad_group_rn = client.get_service("AdGroupService").ad_group_path(customer_id, "-3")
    ops = []

    # 1) Budget
    op = client.get_type("MutateOperation")
    budget = op.campaign_budget_operation.create
    budget.resource_name = budget_rn
    budget.name = f"{data.name} Budget"
    budget.amount_micros = to_micros(data.budget)
    budget.delivery_method = client.enums.BudgetDeliveryMethodEnum.STANDARD
    budget.explicitly_shared = False
    ops.append(op)

    # 2) Campaign
    op = client.get_type("MutateOperation")
    campaign = op.campaign_operation.create
    campaign.resource_name = campaign_rn
    campaign.name = data.name
    campaign.advertising_channel_type = client.enums.AdvertisingChannelTypeEnum.SEARCH
    campaign.status = client.enums.CampaignStatusEnum.PAUSED
    campaign.campaign_budget = budget_rn
    campaign.manual_cpc.enhanced_cpc_enabled = False
    campaign.network_settings.target_google_search = True
    campaign.network_settings.target_search_network = True
    campaign.network_settings.target_content_network = False
    campaign.contains_eu_political_advertising = (
        client.enums.EuPoliticalAdvertisingStatusEnum.DOES_NOT_CONTAIN_EU_POLITICAL_ADVERTISING
    )
    ops.append(op)

    # 3) Ad group
    op = client.get_type("MutateOperation")
    ad_group = op.ad_group_operation.create
    ad_group.resource_name = ad_group_rn
    ad_group.name = f"{data.name} Ad Group"
    ad_group.campaign = campaign_rn
    ad_group.status = client.enums.AdGroupStatusEnum.ENABLED
    ad_group.type_ = client.enums.AdGroupTypeEnum.SEARCH_STANDARD
    ad_group.cpc_bid_micros = to_micros(data.max_cpc)
    ops.append(op)

    # 4) Responsive search ad (needs a landing page and 2+ descriptions)
    if can_create_ad(data):
        op = client.get_type("MutateOperation")
        ad_group_ad = op.ad_group_ad_operation.create
        ad_group_ad.ad_group = ad_group_rn
        ad_group_ad.status = client.enums.AdGroupAdStatusEnum.PAUSED
        ad_group_ad.ad.final_urls.append(data.final_url)
        for text in data.headlines[:RSA_MAX_HEADLINES]:
            asset = client.get_type("AdTextAsset")
            asset.text = text
            ad_group_ad.ad.responsive_search_ad.headlines.append(asset)
        for text in data.descriptions[:RSA_MAX_DESCRIPTIONS]:
            asset = client.get_type("AdTextAsset")
            asset.text = text
            ad_group_ad.ad.responsive_search_ad.descriptions.append(asset)
        ops.append(op)

    return ops


def create_search_campaign(client: GoogleAdsClient, data: CampaignFormData, timeout: Optional[float] = None) -> dict:
    """Run the batch mutate. GoogleAdsException propagates to the caller."""
    customer_id = digits_only(data.customer_id)
    ops = build_search_campaign_operations(client, customer_id, data)
    ga_service = client.get_service("GoogleAdsService")
    response = ga_service.mutate(customer_id=customer_id, mutate_operations=ops, timeout=timeout)

    created = {}
    for r in response.mutate_operation_responses:
        for kind in ("campaign_budget_result", "campaign_result", "ad_group_result", "ad_group_ad_result"):
            rn = getattr(getattr(r, kind, None), "resource_name", "")
            if rn:
                created[kind.replace("_result", "")] = rn

    campaign_rn = created.get("campaign", "")
    log.info("Created search campaign %s for %s (%s operations)", campaign_rn, customer_id, len(ops))
    return {
        "success": True,
        "campaignId": campaign_rn.rsplit("/", 1)[-1],
        "message": "Campaign created successfully",
        "resourceNames": created,
        "adCreated": "ad_group_ad" in created,
    }
