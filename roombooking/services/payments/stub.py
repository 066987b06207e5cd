from __future__ import annotations

import uuid
from typing import Any

from ...config import Settings
from ...core.errors import GatewayError
from .gateway import (
    INTENT_FAILED,
    INTENT_PENDING,
    INTENT_REFUNDED,
    INTENT_SUCCEEDED,
    BasePaymentGateway,
    GatewayEvent,
    GatewayIntent,
    GatewayRefund,
)


class StubGateway(BasePaymentGateway):
    """In-process gateway that settles every intent with ``settle_status``.

    Intents it has never seen are reported as settled too, so the stub keeps
    working across requests that each build a fresh instance.
    """

    provider = "stub"

    def __init__(self, settings: Settings, settle_status: str = INTENT_SUCCEEDED) -> None:
        super().__init__(settings)
        self.settle_status = settle_status
        self.intents: dict[str, GatewayIntent] = {}

    def create_intent(
        self,
        amount: int,
        currency: str,
        description: str,
        metadata: dict[str, Any],
    ) -> GatewayIntent:
        intent_id = f"pi_stub_{uuid.uuid4().hex[:16]}"
        intent = GatewayIntent(
            intent_id=intent_id,
            status=INTENT_PENDING,
            raw_status="requires_confirmation",
            amount=amount,
            currency=currency,
            client_secret=f"{intent_id}_secret",
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        return intent

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        intent = self.intents.get(intent_id)
        if intent is None:
            intent = GatewayIntent(intent_id=intent_id, status=INTENT_PENDING, amount=0, currency="")
            self.intents[intent_id] = intent
        if intent.status == INTENT_PENDING:
            intent.status = self.settle_status
            intent.raw_status = self.settle_status
            if self.settle_status == INTENT_SUCCEEDED:
                intent.transaction_id = f"ch_stub_{uuid.uuid4().hex[:16]}"
        return intent

    def cancel_intent(self, intent_id: str) -> GatewayIntent:
        intent = self.intents.get(intent_id) or GatewayIntent(
            intent_id=intent_id, status=INTENT_PENDING, amount=0, currency=""
        )
        if intent.status == INTENT_SUCCEEDED:
            raise GatewayError("Cannot cancel an intent that already succeeded")
        intent.status = INTENT_FAILED
        intent.raw_status = "canceled"
        self.intents[intent_id] = intent
        return intent

    def refund(self, intent_id: str, amount: int | None, reason: str) -> GatewayRefund:
        intent = self.intents.get(intent_id)
        if intent is not None:
            intent.status = INTENT_REFUNDED
        return GatewayRefund(
            refund_id=f"re_stub_{uuid.uuid4().hex[:16]}",
            intent_id=intent_id,
            amount=amount,
            status="succeeded",
        )

    def parse_webhook(self, data: dict[str, Any]) -> GatewayEvent:
        # Webhooks are not signed for the stub provider, take the payload as is
        return GatewayEvent(
            event_id=str(data.get("event_id") or data.get("id") or ""),
            event_type=data.get("type", "payment_intent.succeeded"),
            intent_id=data.get("intent_id"),
            status=data.get("status", INTENT_SUCCEEDED),
        )
