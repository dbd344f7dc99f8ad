from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from iot_marketplace.offering.description import SubscribableOfferingDescription
from iot_marketplace.offering.query import LicenseType

LOCALHOST_NAMES = ("localhost", "127.0.0.1", "::1")


@dataclass(frozen=True)
class OfferingSelector:
    """Picks one offering out of the discovered candidates

    Filters are applied first; the remaining candidates are ranked by price
    (when ``cheapest``) and then by license permissiveness (when
    ``most_permissive``). Ties keep the marketplace order.
    """

    only_localhost: bool = False
    cheapest: bool = False
    most_permissive: bool = False

    def _is_local(self, description: SubscribableOfferingDescription) -> bool:
        return any(ep.host in LOCALHOST_NAMES for ep in description.endpoints)

    def _rank(self, description: SubscribableOfferingDescription) -> tuple:
        key = []
        if self.cheapest:
            key.append(description.price_amount)
        if self.most_permissive:
            # Offerings without a license rank last
            key.append(description.license.permissiveness_rank if description.license else len(LicenseType))
        return tuple(key)

    def filter(self, descriptions: Sequence[SubscribableOfferingDescription]) -> List[SubscribableOfferingDescription]:
        candidates = list(descriptions or [])
        if self.only_localhost:
            candidates = [d for d in candidates if self._is_local(d)]
        return sorted(candidates, key=self._rank)

    def select(self, descriptions: Sequence[SubscribableOfferingDescription]) -> Optional[SubscribableOfferingDescription]:
        ranked = self.filter(descriptions)
        return ranked[0] if ranked else None
