# mccdash/campaigns/__init__.py
from mccdash.campaigns.validation import CampaignValidationError, validate_campaign_data

__all__ = ["CampaignValidationError", "validate_campaign_data"]
