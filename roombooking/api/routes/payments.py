from fastapi import APIRouter, Depends, status

from ...api import deps
from ...core.context import RequestContext
from ...db import schemas
from ...services.payment_service import PaymentStateMachine

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("", response_model=schemas.Payment)
def create_payment(
    payload: schemas.PaymentCreate,
    ctx: RequestContext = Depends(deps.get_context),
    machine: PaymentStateMachine = Depends(deps.get_payment_machine),
):
    return machine.create_payment(
        ctx,
        payload.booking_id,
        payload.method,
        amount=payload.amount,
        transaction_id=payload.transaction_id,
        proof_reference=payload.proof_reference,
    )


@router.get("", response_model=list[schemas.Payment])
def list_payments(
    booking_id: int,
    ctx: RequestContext = Depends(deps.get_context),
    machine: PaymentStateMachine = Depends(deps.get_payment_machine),
):
    return machine.list_payments(ctx, booking_id)


@router.post("/intents", response_model=schemas.PaymentIntent, status_code=status.HTTP_201_CREATED)
def create_payment_intent(
    payload: schemas.PaymentIntentCreate,
    ctx: RequestContext = Depends(deps.get_context),
    machine: PaymentStateMachine = Depends(deps.get_payment_machine),
):
    payment, intent = machine.create_intent(ctx, payload.booking_id)
    return {
        "payment": payment,
        "intent_id": intent.intent_id,
        "client_secret": intent.client_secret,
        "amount_minor": intent.amount,
        "currency": intent.currency,
    }


@router.post("/intents/{intent_id}/confirm", response_model=schemas.IntentOutcome)
def confirm_payment_intent(
    intent_id: str,
    ctx: RequestContext = Depends(deps.get_context),
    machine: PaymentStateMachine = Depends(deps.get_payment_machine),
):
    return machine.confirm_intent(ctx, intent_id)


@router.post("/intents/{intent_id}/cancel", response_model=schemas.Payment)
def cancel_payment_intent(
    intent_id: str,
    ctx: RequestContext = Depends(deps.get_context),
    machine: PaymentStateMachine = Depends(deps.get_payment_machine),
):
    return machine.cancel_intent(ctx, intent_id)


@router.post("/intents/{intent_id}/refund", response_model=schemas.Payment)
def refund_payment_intent(
    intent_id: str,
    payload: schemas.PaymentRefund | None = None,
    ctx: RequestContext = Depends(deps.require_admin),
    machine: PaymentStateMachine = Depends(deps.get_payment_machine),
):
    payload = payload or schemas.PaymentRefund()
    return machine.refund(ctx, intent_id, payload.amount, payload.reason)


@router.post("/webhook")
def payments_webhook(
    payload: dict,
    machine: PaymentStateMachine = Depends(deps.get_payment_machine),
):
    return machine.handle_webhook(payload)
