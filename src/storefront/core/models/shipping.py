from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class WeightTier:
    min_weight_g: int
    max_weight_g: int
    rate_cents: int


@dataclass(slots=True)
class ShippingZone:
    name: str
    countries: list[str]
    enabled: bool = True
    free_shipping_min: int | None = None
    tiers: list[WeightTier] = field(default_factory=list)
    id: int | None = None

    def covers(self, country: str) -> bool:
        return country.upper() in {code.upper() for code in self.countries}


@dataclass(slots=True, frozen=True)
class ShippingQuote:
    shipping_cents: int
    total_weight_g: int
    free_shipping_min: int | None
    zone_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "shippingCents": self.shipping_cents,
            "totalWeightG": self.total_weight_g,
            "freeShippingMin": self.free_shipping_min,
            "zone": self.zone_name,
        }
