from .calculator import (
    DEFAULT_CART_WEIGHT_G,
    DEFAULT_COUNTRY,
    FALLBACK_FREE_SHIPPING_MIN,
    FALLBACK_ZONE_NAME,
    OUNCE_TO_GRAMS,
    calculate_shipping,
    cart_weight_g,
    find_zone,
    pick_tier,
    product_weight_g,
)

__all__ = [
    "DEFAULT_CART_WEIGHT_G",
    "DEFAULT_COUNTRY",
    "FALLBACK_FREE_SHIPPING_MIN",
    "FALLBACK_ZONE_NAME",
    "OUNCE_TO_GRAMS",
    "calculate_shipping",
    "cart_weight_g",
    "find_zone",
    "pick_tier",
    "product_weight_g",
]
