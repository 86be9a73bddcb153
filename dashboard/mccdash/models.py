# mccdash/models.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional


def digits_only(s: str | int | None) -> str:
    return "".join(ch for ch in str(s or "") if ch.isdigit())


def customer_id_from_resource(resource_name: str) -> str:
    """'customers/1234567890' -> '1234567890'"""
    return digits_only(str(resource_name).rsplit("/", 1)[-1])


@dataclass
class CustomerAccount:
    """A Google Ads account node. ``parent_id`` links a sub-account to its manager."""

    id: str
    resource_name: str
    display_name: Optional[str] = None
    is_mcc: Optional[bool] = None
    parent_id: Optional[str] = None
    level: Optional[int] = None
    currency_code: Optional[str] = None
    time_zone: Optional[str] = None

    @classmethod
    def from_id(cls, customer_id: str | int, **kwargs) -> "CustomerAccount":
        cid = digits_only(customer_id)
        kwargs.setdefault("display_name", f"Account {cid}")
        return cls(id=cid, resource_name=f"customers/{cid}", **kwargs)

    @classmethod
    def from_resource_name(cls, resource_name: str, **kwargs) -> "CustomerAccount":
        return cls.from_id(customer_id_from_resource(resource_name), **kwargs)

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "resourceName": self.resource_name,
            "displayName": self.display_name or f"Account {self.id}",
        }
        if self.is_mcc is not None:
            out["isMCC"] = self.is_mcc
        if self.parent_id:
            out["parentId"] = self.parent_id
        for key, value in (("level", self.level), ("currencyCode", self.currency_code), ("timeZone", self.time_zone)):
            if value is not None:
                out[key] = value
        return out


@dataclass
class CampaignFormData:
    customer_id: str
    name: str
    budget: float
    max_cpc: float
    headlines: list[str] = field(default_factory=list)
    descriptions: list[str] = field(default_factory=list)
    final_url: Optional[str] = None
    mcc_id: Optional[str] = None


MOCK_CUSTOMER_ACCOUNTS = (
    CustomerAccount(id="1234567890", resource_name="customers/1234567890",
                    display_name="Test Account 1", is_mcc=False),
    CustomerAccount(id="9876543210", resource_name="customers/9876543210",
                    display_name="Test MCC Account", is_mcc=True),
    CustomerAccount(id="5555555555", resource_name="customers/5555555555",
                    display_name="Sub Account 1", is_mcc=False, parent_id="9876543210"),
)


def mock_accounts() -> list[CustomerAccount]:
    return [replace(a) for a in MOCK_CUSTOMER_ACCOUNTS]
