from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from storefront.core.db import StorefrontRepository
from storefront.core.models import Product, ShippingZone, WeightTier
from storefront.errors import ValidationFailure
from storefront.parsers.utils import clean_str

DEFAULT_ZONE_NAME = "United States"
DEFAULT_ZONE = ShippingZone(
    name=DEFAULT_ZONE_NAME,
    countries=["US"],
    enabled=True,
    free_shipping_min=7500,
    tiers=[
        WeightTier(min_weight_g=0, max_weight_g=250, rate_cents=450),
        WeightTier(min_weight_g=251, max_weight_g=750, rate_cents=875),
        WeightTier(min_weight_g=751, max_weight_g=2000, rate_cents=1200),
        WeightTier(min_weight_g=2001, max_weight_g=10000, rate_cents=1800),
    ],
)


def _optional_number(entry: dict[str, Any], key: str) -> float | None:
    value = entry.get(key)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"{key} must be a number") from exc


def product_from_dict(entry: dict[str, Any]) -> Product:
    product_id = clean_str(entry.get("id"))
    sku = clean_str(entry.get("sku"))
    name = clean_str(entry.get("name"))
    if not product_id or not sku or not name:
        raise ValidationFailure("Products need id, sku and name")
    try:
        price_cents = int(entry.get("priceCents", 0))
        stock = int(entry.get("stock", 0))
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"Product {product_id}: priceCents and stock must be integers") from exc
    if price_cents < 0 or stock < 0:
        raise ValidationFailure(f"Product {product_id}: priceCents and stock must be >= 0")

    weight_grams = _optional_number(entry, "weightGrams")
    return Product(
        id=product_id,
        sku=sku,
        name=name,
        price_cents=price_cents,
        currency=(clean_str(entry.get("currency")) or "usd").lower(),
        stock=stock,
        active=bool(entry.get("active", True)),
        requires_shipping=bool(entry.get("requiresShipping", True)),
        weight_g=_optional_number(entry, "weightG"),
        weight_oz=_optional_number(entry, "weightOz"),
        weight_grams=int(weight_grams) if weight_grams is not None else None,
        volume_ml=_optional_number(entry, "volumeMl"),
    )


def zone_from_dict(entry: dict[str, Any]) -> ShippingZone:
    name = clean_str(entry.get("name"))
    if not name:
        raise ValidationFailure("Shipping zones need a name")
    countries = entry.get("countries") or []
    if not isinstance(countries, list):
        raise ValidationFailure(f"Zone {name}: countries must be a list")
    tiers: list[WeightTier] = []
    for tier in entry.get("weightTiers") or []:
        try:
            tiers.append(
                WeightTier(
                    min_weight_g=int(tier["minWeightG"]),
                    max_weight_g=int(tier["maxWeightG"]),
                    rate_cents=int(tier["rateCents"]),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationFailure(f"Zone {name}: invalid weight tier {tier!r}") from exc
    free_shipping_min = entry.get("freeShippingMin")
    return ShippingZone(
        name=name,
        countries=[str(code) for code in countries],
        enabled=bool(entry.get("enabled", True)),
        free_shipping_min=int(free_shipping_min) if free_shipping_min is not None else None,
        tiers=tiers,
    )


class CatalogSeeder:
    def __init__(self, repository: StorefrontRepository, logger: logging.Logger | logging.LoggerAdapter):
        self.repository = repository
        self.logger = logger

    def ensure_default_shipping_zone(self) -> bool:
        """Create the default US zone unless a zone with its name already exists."""
        existing = {zone.name for zone in self.repository.list_shipping_zones()}
        if DEFAULT_ZONE_NAME in existing:
            return False
        self.repository.upsert_shipping_zone(DEFAULT_ZONE)
        self.logger.info("Default shipping zone %s created", DEFAULT_ZONE_NAME)
        return True

    def load_catalog(self, path: Path) -> dict[str, int]:
        """Upsert products and shipping zones from a JSON catalog file.

        The file holds ``products`` and ``shippingZones`` arrays with
        camelCase keys.
        """
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise ValidationFailure(f"Catalog {path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValidationFailure(f"Catalog {path} must be a JSON object")

        products = [product_from_dict(entry) for entry in payload.get("products") or []]
        zones = [zone_from_dict(entry) for entry in payload.get("shippingZones") or []]
        for product in products:
            self.repository.upsert_product(product)
        for zone in zones:
            self.repository.upsert_shipping_zone(zone)

        self.logger.info("Catalog %s loaded: %s product(s), %s zone(s)", path.name, len(products), len(zones))
        return {"products": len(products), "zones": len(zones)}
