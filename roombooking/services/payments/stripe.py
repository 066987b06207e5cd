"""Stripe PaymentIntents over plain HTTPS."""

from __future__ import annotations

import logging
from typing import Any

import httpx

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

logger = logging.getLogger(__name__)

EVENT_STATUSES = {
    "payment_intent.succeeded": INTENT_SUCCEEDED,
    "payment_intent.payment_failed": INTENT_FAILED,
    "payment_intent.canceled": INTENT_FAILED,
    "charge.refunded": INTENT_REFUNDED,
}


def normalise_status(payload: dict[str, Any]) -> str:
    status = payload.get("status")
    if status == "succeeded":
        return INTENT_SUCCEEDED
    if status == "canceled":
        return INTENT_FAILED
    # A declined attempt sends the intent back to requires_payment_method.
    if status == "requires_payment_method" and payload.get("last_payment_error"):
        return INTENT_FAILED
    return INTENT_PENDING


class StripeGateway(BasePaymentGateway):
    provider = "stripe"

    def __init__(self, settings: Settings, transport: httpx.BaseTransport | None = None) -> None:
        super().__init__(settings)
        self.client = httpx.Client(
            base_url=settings.payment_api_base,
            auth=(settings.payment_api_key, ""),
            timeout=settings.payment_gateway_timeout_seconds,
            transport=transport,
        )

    def _request(self, method: str, path: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = self.client.request(method, path, data=data)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Stripe request timed out", extra={"path": path})
            raise GatewayError("Payment gateway timed out") from exc
        except httpx.HTTPStatusError as exc:
            error = {}
            try:
                error = exc.response.json().get("error", {})
            except ValueError:
                pass
            logger.warning(
                "Stripe request rejected",
                extra={"path": path, "status_code": exc.response.status_code, "error": error},
            )
            raise GatewayError(error.get("message") or "Payment gateway rejected the request") from exc
        except httpx.HTTPError as exc:
            logger.warning("Stripe request failed", extra={"path": path})
            raise GatewayError("Payment gateway unavailable") from exc
        return response.json()

    def _intent(self, payload: dict[str, Any]) -> GatewayIntent:
        return GatewayIntent(
            intent_id=payload["id"],
            status=normalise_status(payload),
            raw_status=payload.get("status", ""),
            amount=int(payload.get("amount") or 0),
            currency=payload.get("currency", ""),
            client_secret=payload.get("client_secret"),
            transaction_id=payload.get("latest_charge"),
            metadata=payload.get("metadata") or {},
        )

    def create_intent(
        self,
        amount: int,
        currency: str,
        description: str,
        metadata: dict[str, Any],
    ) -> GatewayIntent:
        data: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "description": description,
            "payment_method_types[]": ["card", "promptpay"] if currency == "thb" else ["card"],
        }
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = str(value)
        logger.info("Creating Stripe payment intent", extra={"amount": amount, "currency": currency})
        return self._intent(self._request("POST", "/payment_intents", data))

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        return self._intent(self._request("GET", f"/payment_intents/{intent_id}"))

    def cancel_intent(self, intent_id: str) -> GatewayIntent:
        return self._intent(self._request("POST", f"/payment_intents/{intent_id}/cancel"))

    def refund(self, intent_id: str, amount: int | None, reason: str) -> GatewayRefund:
        data: dict[str, Any] = {"payment_intent": intent_id, "reason": reason}
        if amount is not None:
            data["amount"] = amount
        payload = self._request("POST", "/refunds", data)
        return GatewayRefund(
            refund_id=payload["id"],
            intent_id=intent_id,
            amount=payload.get("amount"),
            status=payload.get("status", ""),
        )

    def parse_webhook(self, data: dict[str, Any]) -> GatewayEvent:
        event_type = data.get("type", "")
        obj = (data.get("data") or {}).get("object") or {}
        if event_type.startswith("charge."):
            intent_id = obj.get("payment_intent")
        else:
            intent_id = obj.get("id")
        return GatewayEvent(
            event_id=data.get("id", ""),
            event_type=event_type,
            intent_id=intent_id,
            status=EVENT_STATUSES.get(event_type),
        )
