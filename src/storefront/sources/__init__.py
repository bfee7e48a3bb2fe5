from .gateway import FAKE_SIGNATURE, CheckoutGateway, FakeCheckoutGateway
from .models import ProviderLineItem, WebhookEnvelope

__all__ = [
    "FAKE_SIGNATURE",
    "CheckoutGateway",
    "FakeCheckoutGateway",
    "ProviderLineItem",
    "WebhookEnvelope",
]
