from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from ...config import Settings

# Normalised intent outcomes every adapter reports.
INTENT_PENDING = "pending"
INTENT_SUCCEEDED = "succeeded"
INTENT_FAILED = "failed"
INTENT_REFUNDED = "refunded"


@dataclass
class GatewayIntent:
    intent_id: str
    status: str
    amount: int
    currency: str
    raw_status: str = ""
    client_secret: str | None = None
    transaction_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayRefund:
    refund_id: str
    intent_id: str
    amount: int | None
    status: str


@dataclass
class GatewayEvent:
    event_id: str
    event_type: str
    intent_id: str | None
    status: str | None


class BasePaymentGateway(ABC):
    provider: str = ""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @abstractmethod
    def create_intent(
        self,
        amount: int,
        currency: str,
        description: str,
        metadata: dict[str, Any],
    ) -> GatewayIntent:
        raise NotImplementedError

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        raise NotImplementedError

    @abstractmethod
    def cancel_intent(self, intent_id: str) -> GatewayIntent:
        raise NotImplementedError

    @abstractmethod
    def refund(self, intent_id: str, amount: int | None, reason: str) -> GatewayRefund:
        raise NotImplementedError

    @abstractmethod
    def parse_webhook(self, data: dict[str, Any]) -> GatewayEvent:
        raise NotImplementedError


def get_gateway(settings: Settings) -> BasePaymentGateway:
    if settings.payment_provider == "stub":
        from .stub import StubGateway

        return StubGateway(settings)
    if settings.payment_provider == "stripe":
        from .stripe import StripeGateway

        return StripeGateway(settings)
    raise ValueError(f"Unsupported payment provider {settings.payment_provider}")
