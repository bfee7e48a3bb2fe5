from .source import StripeCheckoutGateway

__all__ = ["StripeCheckoutGateway"]
