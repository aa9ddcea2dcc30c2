"""
Sale completion shared by the webhook and the buyer's verify-payment call.

Both paths go through the same conditional transition, so whichever arrives
first completes the sale and applies inventory; the other is a no-op.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.logging import get_logger
from ticketing.db.base import utcnow
from ticketing.models.sale import PaymentStatus, TicketSale
from ticketing.services import inventory_service, sale_ledger

logger = get_logger(__name__)


async def complete_sale(
    db: AsyncSession,
    sale: TicketSale,
    payment_intent_id: Optional[str],
    source: str,
) -> bool:
    """
    Mark a pending sale completed and count its tickets as sold.
    Returns True if this call completed the sale. Does not commit.
    """
    applied = await sale_ledger.transition_sale(
        db,
        sale.id,
        from_statuses={PaymentStatus.PENDING},
        to_status=PaymentStatus.COMPLETED,
        paid_at=utcnow(),
        stripe_payment_intent_id=payment_intent_id,
    )
    if not applied:
        logger.info("sale_completion_skipped", sale_id=sale.id, source=source)
        return False

    await inventory_service.increment_sold(db, sale.ticket_type_id, sale.quantity)
    logger.info("sale_completed", sale_id=sale.id, source=source)
    return True
