from .gateway import BasePaymentGateway, GatewayEvent, GatewayIntent, GatewayRefund, get_gateway
from .stub import StubGateway
from .stripe import StripeGateway

__all__ = [
    "BasePaymentGateway",
    "GatewayEvent",
    "GatewayIntent",
    "GatewayRefund",
    "get_gateway",
    "StubGateway",
    "StripeGateway",
]
