"""Offering search query and the value types it is made of"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from iot_marketplace.exceptions import IncompleteOfferingQueryError


class PricingModel(str, Enum):
    FREE = "FREE"
    PER_ACCESS = "PER_ACCESS"
    PER_MONTH = "PER_MONTH"
    PER_BYTE = "PER_BYTE"


class LicenseType(str, Enum):
    # Declared from most to least permissive
    CREATIVE_COMMONS = "CREATIVE_COMMONS"
    OPEN_DATA_LICENSE = "OPEN_DATA_LICENSE"
    NON_COMMERCIAL_DATA_LICENSE = "NON_COMMERCIAL_DATA_LICENSE"
    PROJECT_INTERNAL_USE_ONLY = "PROJECT_INTERNAL_USE_ONLY"

    @property
    def permissiveness_rank(self) -> int:
        return list(LicenseType).index(self)


@dataclass(frozen=True)
class Price:
    amount: float
    currency: str = "EUR"

    @classmethod
    def euros(cls, amount: float) -> "Price":
        return cls(amount=amount, currency="EUR")


@dataclass(frozen=True)
class Information:
    name: str
    category: str


@dataclass(frozen=True)
class RegionFilter:
    city: str


@dataclass(frozen=True)
class OfferingQuery:
    """Search query for offerings on the marketplace

    Example:
        OfferingQuery(
            local_id="ParkingQuery",
            information=Information("Parking Query", "bigiot:Parking"),
            region=RegionFilter("Barcelona"),
            pricing_model=PricingModel.PER_ACCESS,
            max_price=Price.euros(0.002),
            license_type=LicenseType.OPEN_DATA_LICENSE,
        )
    """

    local_id: str
    information: Optional[Information] = None
    region: Optional[RegionFilter] = None
    pricing_model: Optional[PricingModel] = None
    max_price: Optional[Price] = None
    license_type: Optional[LicenseType] = None

    def validate(self) -> None:
        missing = []
        if not self.local_id:
            missing.append("local_id")
        if self.information is None or not self.information.name:
            missing.append("information.name")
        if self.information is None or not self.information.category:
            missing.append("information.category")
        if missing:
            raise IncompleteOfferingQueryError(
                f"Offering query {self.local_id!r} is missing: {', '.join(missing)}"
            )

    def query_id(self, consumer_id: str) -> str:
        return f"{consumer_id}-{self.local_id}"

    def to_graphql_input(self, consumer_id: str) -> Dict:
        """Input object of the marketplace addOfferingQuery mutation"""
        self.validate()
        data: Dict = {
            "id": self.query_id(consumer_id),
            "localId": self.local_id,
            "consumerId": consumer_id,
            "name": self.information.name,
            "rdfUri": self.information.category,
        }
        if self.region is not None:
            data["spatialExtent"] = {"city": self.region.city}
        if self.license_type is not None:
            data["licenseType"] = self.license_type.value
        if self.pricing_model is not None or self.max_price is not None:
            price: Dict = {}
            if self.pricing_model is not None:
                price["pricingModel"] = self.pricing_model.value
            if self.max_price is not None:
                price["money"] = {"amount": self.max_price.amount, "currency": self.max_price.currency}
            data["price"] = price
        return data
