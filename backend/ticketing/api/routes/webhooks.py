"""
Payment processor webhook endpoint.

Authentication is the signature alone. Any delivery that verifies and is
processed (including intentional no-ops) is acknowledged with 200 so the
processor stops retrying; unexpected failures return 500 so it retries.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.errors import InvalidSignatureError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_webhook_event, webhook_signature_failures
from ticketing.db.session import get_db
from ticketing.schemas.webhook import WebhookAck
from ticketing.services.cache_service import mark_event_processed, was_event_processed
from ticketing.services.gateway_factory import get_payment_gateway
from ticketing.services.interfaces.payment_gateway import PaymentGateway
from ticketing.services.webhook_service import WebhookOutcome, WebhookReconciler

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

reconciler = WebhookReconciler()


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    payload = await request.body()
    try:
        event = gateway.verify_webhook(payload, stripe_signature)
    except InvalidSignatureError:
        webhook_signature_failures.inc()
        raise

    event_id = event.get("id")
    event_type = event.get("type", "unknown")
    logger.info("webhook_received", event_id=event_id, event_type=event_type)

    if await was_event_processed(event_id):
        record_webhook_event(event_type, WebhookOutcome.DUPLICATE.value)
        logger.info("webhook_already_processed", event_id=event_id)
        return WebhookAck()

    try:
        outcome = await reconciler.handle(db, event)
    except Exception:
        await db.rollback()
        record_webhook_event(event_type, "error")
        logger.exception("webhook_processing_failed", event_id=event_id, event_type=event_type)
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    record_webhook_event(event_type, outcome.value)
    await mark_event_processed(event_id)
    return WebhookAck()
