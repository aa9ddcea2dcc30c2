"""
Buyer-facing confirmation: sale lookup after redirect-back and the
verify-payment fallback used when the webhook is late.
"""

import json
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.errors import NotFoundError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_payment_verification
from ticketing.models.event import Event
from ticketing.models.sale import PaymentStatus, TicketSale
from ticketing.models.ticket_type import TicketType
from ticketing.models.user import User
from ticketing.services import sale_ledger
from ticketing.services.interfaces.payment_gateway import PaymentGateway
from ticketing.services.settlement_service import complete_sale

logger = get_logger(__name__)

FALLBACK_TITLE = "Ticket"


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    payment_status: str


def build_qr_payload(sale: TicketSale, event_title: str) -> str:
    """Content of the scannable code presented at the door."""
    return json.dumps(
        {
            "ticketId": sale.id,
            "eventTitle": event_title,
            "buyerName": sale.buyer_name,
            "quantity": sale.quantity,
        },
        ensure_ascii=False,
    )


async def get_owned_sale_by_session(
    db: AsyncSession, session_id: str, user: User
) -> TicketSale:
    sale = await sale_ledger.get_sale_by_session(db, session_id)
    # another user's sale is reported exactly like a missing one
    if sale is None or sale.user_id != user.id:
        raise NotFoundError("Sale not found for provided sessionId")
    return sale


async def build_confirmation(db: AsyncSession, sale: TicketSale) -> dict:
    event = (await db.execute(select(Event).where(Event.id == sale.event_id))).scalar_one_or_none()
    ticket_type = (
        await db.execute(select(TicketType).where(TicketType.id == sale.ticket_type_id))
    ).scalar_one_or_none()

    event_title = event.title if event else FALLBACK_TITLE
    return {
        "id": sale.id,
        "payment_status": sale.payment_status,
        "quantity": sale.quantity,
        "total_amount": sale.total_amount,
        "buyer_name": sale.buyer_name,
        "event_title": event_title,
        "event_date": event.event_date if event else None,
        "event_location": event.location if event else None,
        "ticket_type_name": ticket_type.name if ticket_type else FALLBACK_TITLE,
        "qr_payload": build_qr_payload(sale, event_title),
    }


async def verify_payment(
    db: AsyncSession,
    gateway: PaymentGateway,
    session_id: str,
    user: User,
) -> VerificationResult:
    """
    Lower-authority completion path. Asks the processor whether the session
    was paid and, if so, runs the same conditional completion as the webhook.
    """
    sale = await get_owned_sale_by_session(db, session_id, user)

    if sale.payment_status == PaymentStatus.COMPLETED.value:
        record_payment_verification("already_completed")
        return VerificationResult(ok=True, payment_status=PaymentStatus.COMPLETED.value)
    if sale.payment_status != PaymentStatus.PENDING.value:
        record_payment_verification("unpaid")
        return VerificationResult(ok=False, payment_status=sale.payment_status)

    status = await gateway.retrieve_checkout_session(session_id)
    logger.info(
        "checkout_session_checked",
        sale_id=sale.id,
        status=status.status,
        payment_status=status.payment_status,
    )
    if not status.is_paid:
        record_payment_verification("unpaid")
        return VerificationResult(
            ok=False, payment_status=status.payment_status or status.status or "unknown"
        )

    await complete_sale(db, sale, status.payment_intent_id, source="verify_payment")
    await db.commit()

    refreshed: Optional[TicketSale] = await sale_ledger.get_sale(db, sale.id)
    current = refreshed.payment_status if refreshed else sale.payment_status
    record_payment_verification("completed")
    return VerificationResult(ok=current == PaymentStatus.COMPLETED.value, payment_status=current)
