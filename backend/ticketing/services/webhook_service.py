"""
Webhook reconciler for payment processor events.

Deliveries are at-least-once and may arrive out of order or concurrently
with the buyer's own verify-payment call. Every handler is therefore a
conditional transition on the sale's current status: a delivery that finds
the sale already moved is acknowledged as a no-op, never an error.

Outcomes:
  - applied:   this delivery changed a sale
  - duplicate: the change had already been applied
  - ignored:   nothing to do (unknown type, missing metadata, unpaid session)
"""

from enum import Enum
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.logging import get_logger
from ticketing.db.base import utcnow
from ticketing.models.sale import PaymentStatus, TicketSale
from ticketing.services import sale_ledger
from ticketing.services.settlement_service import complete_sale

logger = get_logger(__name__)


class WebhookOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


def _object(event: dict) -> dict:
    return (event.get("data") or {}).get("object") or {}


def _metadata_sale_id(payload: dict) -> Optional[int]:
    raw = (payload.get("metadata") or {}).get("ticket_sale_id")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _payment_intent_id(value) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("id")
    return value


class WebhookReconciler:
    """Dispatches verified processor events to sale transitions."""

    def __init__(self):
        self._handlers: dict[str, Callable[[AsyncSession, dict], Awaitable[WebhookOutcome]]] = {
            "checkout.session.completed": self._checkout_completed,
            "checkout.session.expired": self._checkout_expired,
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "charge.refunded": self._charge_refunded,
        }

    async def handle(self, db: AsyncSession, event: dict) -> WebhookOutcome:
        event_type = event.get("type", "unknown")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("webhook_unhandled_type", event_type=event_type)
            return WebhookOutcome.IGNORED

        outcome = await handler(db, _object(event))
        await db.commit()
        logger.info(
            "webhook_handled",
            event_type=event_type,
            event_id=event.get("id"),
            outcome=outcome.value,
        )
        return outcome

    async def _checkout_completed(self, db: AsyncSession, session: dict) -> WebhookOutcome:
        sale_id = _metadata_sale_id(session)
        if sale_id is None:
            logger.info("webhook_missing_sale_metadata", session_id=session.get("id"))
            return WebhookOutcome.IGNORED

        sale = await sale_ledger.get_sale(db, sale_id)
        if sale is None:
            logger.warning("webhook_sale_not_found", sale_id=sale_id)
            return WebhookOutcome.IGNORED

        if sale.payment_status == PaymentStatus.COMPLETED.value:
            logger.info("webhook_sale_already_completed", sale_id=sale_id)
            return WebhookOutcome.DUPLICATE

        is_paid = session.get("payment_status") == "paid" or session.get("status") == "complete"
        if not is_paid:
            logger.info("webhook_session_not_paid", sale_id=sale_id, session_id=session.get("id"))
            return WebhookOutcome.IGNORED

        applied = await complete_sale(
            db,
            sale,
            payment_intent_id=_payment_intent_id(session.get("payment_intent")),
            source="webhook",
        )
        if not applied:
            logger.warning(
                "webhook_completion_rejected",
                sale_id=sale_id,
                current_status=sale.payment_status,
            )
            return WebhookOutcome.DUPLICATE
        return WebhookOutcome.APPLIED

    async def _checkout_expired(self, db: AsyncSession, session: dict) -> WebhookOutcome:
        sale_id = _metadata_sale_id(session)
        if sale_id is None:
            logger.info("webhook_missing_sale_metadata", session_id=session.get("id"))
            return WebhookOutcome.IGNORED

        applied = await sale_ledger.transition_sale(
            db,
            sale_id,
            from_statuses={PaymentStatus.PENDING},
            to_status=PaymentStatus.CANCELLED,
            cancelled_at=utcnow(),
        )
        return WebhookOutcome.APPLIED if applied else WebhookOutcome.DUPLICATE

    async def _payment_succeeded(self, db: AsyncSession, intent: dict) -> WebhookOutcome:
        # checkout.session.completed is authoritative for marking a sale paid
        logger.info("webhook_payment_intent_succeeded", payment_intent_id=intent.get("id"))
        return WebhookOutcome.IGNORED

    async def _find_sale_for_intent(self, db: AsyncSession, intent: dict) -> Optional[TicketSale]:
        sale_id = _metadata_sale_id(intent)
        if sale_id is not None:
            sale = await sale_ledger.get_sale(db, sale_id)
            if sale is not None:
                return sale
        intent_id = intent.get("id")
        if not intent_id:
            return None
        return await sale_ledger.get_sale_by_payment_intent(db, intent_id)

    async def _payment_failed(self, db: AsyncSession, intent: dict) -> WebhookOutcome:
        sale = await self._find_sale_for_intent(db, intent)
        if sale is None:
            logger.info("webhook_failed_intent_unmatched", payment_intent_id=intent.get("id"))
            return WebhookOutcome.IGNORED

        applied = await sale_ledger.transition_sale(
            db,
            sale.id,
            from_statuses={PaymentStatus.PENDING},
            to_status=PaymentStatus.FAILED,
            stripe_payment_intent_id=intent.get("id"),
        )
        return WebhookOutcome.APPLIED if applied else WebhookOutcome.DUPLICATE

    async def _charge_refunded(self, db: AsyncSession, charge: dict) -> WebhookOutcome:
        intent_id = _payment_intent_id(charge.get("payment_intent"))
        if not intent_id:
            logger.info("webhook_refund_without_intent", charge_id=charge.get("id"))
            return WebhookOutcome.IGNORED

        sale = await sale_ledger.get_sale_by_payment_intent(db, intent_id)
        if sale is None:
            logger.info("webhook_refund_unmatched", payment_intent_id=intent_id)
            return WebhookOutcome.IGNORED

        applied = await sale_ledger.transition_sale(
            db,
            sale.id,
            from_statuses={PaymentStatus.COMPLETED},
            to_status=PaymentStatus.REFUNDED,
            refunded_at=utcnow(),
        )
        return WebhookOutcome.APPLIED if applied else WebhookOutcome.DUPLICATE
