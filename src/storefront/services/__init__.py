from .doctor import run_doctor_checks
from .exporter import export_orders
from .fulfillment import FulfillmentResult, FulfillmentService, FulfillmentStatus
from .manual_orders import ManualOrderService
from .orders import OrderQueryService
from .seeding import CatalogSeeder
from .shipping import ShippingService
from .webhook import WebhookHandler, WebhookResponse

__all__ = [
    "run_doctor_checks",
    "export_orders",
    "FulfillmentResult",
    "FulfillmentService",
    "FulfillmentStatus",
    "ManualOrderService",
    "OrderQueryService",
    "CatalogSeeder",
    "ShippingService",
    "WebhookHandler",
    "WebhookResponse",
]
