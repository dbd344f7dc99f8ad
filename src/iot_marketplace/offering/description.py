from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urlparse

from iot_marketplace.offering.query import LicenseType, Price, PricingModel


@dataclass(frozen=True)
class Endpoint:
    uri: str
    endpoint_type: str = "HTTP_GET"
    access_interface_type: str = "BIGIOT_LIB"

    @property
    def host(self) -> str:
        return urlparse(self.uri).hostname or ""


@dataclass(frozen=True)
class OutputData:
    name: str
    rdf_type: str


@dataclass(frozen=True)
class Activation:
    status: bool
    # Epoch milliseconds, None when the activation never expires
    expiration_time: Optional[int] = None


@dataclass(frozen=True)
class SubscribableOfferingDescription:
    id: str
    name: str
    category: str = ""
    endpoints: List[Endpoint] = field(default_factory=list)
    outputs: List[OutputData] = field(default_factory=list)
    license: Optional[LicenseType] = None
    pricing_model: PricingModel = PricingModel.FREE
    price: Optional[Price] = None
    activation: Activation = field(default_factory=lambda: Activation(status=True))
    provider_id: str = ""
    city: str = ""
    # Marketplace query this offering was discovered with
    query_id: str = ""

    @classmethod
    def from_json(cls, data: Dict, query_id: str = "") -> "SubscribableOfferingDescription":
        """Build a description from a marketplace matchingOfferings item"""
        endpoints = [
            Endpoint(
                uri=ep["uri"],
                endpoint_type=ep.get("endpointType") or "HTTP_GET",
                access_interface_type=ep.get("accessInterfaceType") or "BIGIOT_LIB",
            )
            for ep in data.get("endpoints") or []
        ]
        outputs = [
            OutputData(name=o["name"], rdf_type=(o.get("rdfAnnotation") or {}).get("uri", ""))
            for o in data.get("outputs") or []
        ]

        price_data = data.get("price") or {}
        pricing_model = PricingModel(price_data.get("pricingModel") or "FREE")
        money = price_data.get("money")
        price = Price(amount=float(money["amount"]), currency=money.get("currency", "EUR")) if money else None

        license_value = data.get("license")
        activation_data = data.get("activation") or {}

        return cls(
            id=data["id"],
            name=data.get("name", ""),
            category=(data.get("rdfAnnotation") or {}).get("uri", ""),
            endpoints=endpoints,
            outputs=outputs,
            license=LicenseType(license_value) if license_value else None,
            pricing_model=pricing_model,
            price=price,
            activation=Activation(
                status=bool(activation_data.get("status", True)),
                expiration_time=activation_data.get("expirationTime"),
            ),
            provider_id=(data.get("provider") or {}).get("id", ""),
            city=(data.get("spatialExtent") or {}).get("city", ""),
            query_id=query_id,
        )

    @property
    def price_amount(self) -> float:
        if self.pricing_model is PricingModel.FREE or self.price is None:
            return 0.0
        return self.price.amount

    def output_types(self) -> Dict[str, str]:
        """Output name -> semantic type"""
        return {o.name: o.rdf_type for o in self.outputs}

    def is_active(self, now_ms: Optional[int] = None) -> bool:
        if not self.activation.status:
            return False
        if self.activation.expiration_time is None:
            return True
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        return now_ms < self.activation.expiration_time


def log_offering_descriptions(
    descriptions: List[SubscribableOfferingDescription],
) -> List[SubscribableOfferingDescription]:
    """Log the discovered offerings and pass them through unchanged"""
    logging.info("Discovered %d offering(s)", len(descriptions))
    for d in descriptions:
        logging.info(
            "  %s | %s | %s | %s %s | license=%s | endpoints=%s",
            d.id,
            d.name,
            d.category,
            d.pricing_model.value,
            d.price.amount if d.price else "-",
            d.license.value if d.license else "-",
            ", ".join(ep.uri for ep in d.endpoints) or "-",
        )
    return descriptions
