"""
Sale ledger: persistence and status transitions for ticket sales.

CONCURRENCY STRATEGY: Conditional Transition (compare-and-set)
==============================================================

Problem:
  The webhook, a redelivery of the same webhook, and the buyer's
  confirmation page can all try to move the same sale at the same time.
  A read-then-write would let two of them "win" and count the tickets twice.

Solution:
  Every status change is one statement:

    UPDATE ticket_sales SET payment_status = :to, ...
    WHERE id = :id AND payment_status IN (:from...)

  The row lock taken by the UPDATE serialises competing writers; the loser
  re-evaluates the WHERE clause against the committed status and matches
  zero rows. rowcount tells the caller whether *it* applied the change, so
  follow-up effects (inventory) run exactly once per sale.

These functions only execute statements; callers commit.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_sale_transition
from ticketing.db.base import utcnow
from ticketing.models.sale import PaymentStatus, TicketSale

logger = get_logger(__name__)


@dataclass(frozen=True)
class SaleDraft:
    user_id: int
    event_id: int
    ticket_type_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    platform_fee: Decimal
    payment_processing_fee: Decimal
    total_amount: Decimal
    buyer_name: str
    buyer_email: str
    buyer_phone: Optional[str] = None


async def create_pending_sale(db: AsyncSession, draft: SaleDraft) -> TicketSale:
    sale = TicketSale(
        user_id=draft.user_id,
        event_id=draft.event_id,
        ticket_type_id=draft.ticket_type_id,
        quantity=draft.quantity,
        unit_price=draft.unit_price,
        subtotal=draft.subtotal,
        platform_fee=draft.platform_fee,
        payment_processing_fee=draft.payment_processing_fee,
        total_amount=draft.total_amount,
        buyer_name=draft.buyer_name,
        buyer_email=draft.buyer_email,
        buyer_phone=draft.buyer_phone,
        payment_status=PaymentStatus.PENDING.value,
    )
    db.add(sale)
    await db.flush()
    await db.refresh(sale)

    logger.info(
        "sale_created",
        sale_id=sale.id,
        user_id=draft.user_id,
        ticket_type_id=draft.ticket_type_id,
        quantity=draft.quantity,
        total_amount=str(draft.total_amount),
    )
    return sale


async def _fetch_one(db: AsyncSession, *criteria) -> Optional[TicketSale]:
    # populate_existing: a transition may have changed the row behind the identity map
    result = await db.execute(
        select(TicketSale).where(*criteria).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_sale(db: AsyncSession, sale_id: int) -> Optional[TicketSale]:
    return await _fetch_one(db, TicketSale.id == sale_id)


async def get_sale_by_session(db: AsyncSession, session_id: str) -> Optional[TicketSale]:
    return await _fetch_one(db, TicketSale.stripe_checkout_session_id == session_id)


async def get_sale_by_payment_intent(
    db: AsyncSession, payment_intent_id: str
) -> Optional[TicketSale]:
    return await _fetch_one(db, TicketSale.stripe_payment_intent_id == payment_intent_id)


async def list_user_sales(db: AsyncSession, user_id: int) -> list[TicketSale]:
    result = await db.execute(
        select(TicketSale)
        .where(TicketSale.user_id == user_id)
        .order_by(TicketSale.created_at.desc(), TicketSale.id.desc())
    )
    return list(result.scalars().all())


async def attach_checkout_session(db: AsyncSession, sale_id: int, session_id: str) -> None:
    await db.execute(
        update(TicketSale)
        .where(TicketSale.id == sale_id)
        .values(stripe_checkout_session_id=session_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    logger.info("sale_session_attached", sale_id=sale_id, session_id=session_id)


async def transition_sale(
    db: AsyncSession,
    sale_id: int,
    from_statuses: Iterable[PaymentStatus],
    to_status: PaymentStatus,
    **fields,
) -> bool:
    """
    Move a sale to `to_status` only if its current status is in `from_statuses`.
    Returns True if this call applied the change, False if it was a no-op.
    """
    allowed = [PaymentStatus(s).value for s in from_statuses]
    result = await db.execute(
        update(TicketSale)
        .where(TicketSale.id == sale_id, TicketSale.payment_status.in_(allowed))
        .values(payment_status=to_status.value, updated_at=utcnow(), **fields)
        .execution_options(synchronize_session=False)
    )
    applied = result.rowcount == 1
    record_sale_transition(to_status.value, applied)

    if applied:
        logger.info("sale_transitioned", sale_id=sale_id, to_status=to_status.value)
    else:
        logger.info(
            "sale_transition_skipped",
            sale_id=sale_id,
            to_status=to_status.value,
            expected=allowed,
        )
    return applied


async def cancel_orphan_pending_sales(
    db: AsyncSession,
    now: datetime,
    orphan_after: timedelta,
) -> int:
    """
    Cancel pending sales whose checkout session was never created. Nobody can
    pay these, so no processor lookup is needed.
    """
    result = await db.execute(
        update(TicketSale)
        .where(
            TicketSale.payment_status == PaymentStatus.PENDING.value,
            TicketSale.stripe_checkout_session_id.is_(None),
            TicketSale.created_at < now - orphan_after,
        )
        .values(
            payment_status=PaymentStatus.CANCELLED.value,
            cancelled_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    cancelled = result.rowcount or 0
    logger.info("orphan_sales_cancelled", count=cancelled)
    return cancelled


async def list_expired_pending_sales(
    db: AsyncSession,
    now: datetime,
    expire_after: timedelta,
    limit: int = 500,
) -> list[TicketSale]:
    """
    Pending sales with a checkout session older than any session can live.
    Their payment state must be asked of the processor before they are closed:
    a paid session whose webhook never landed is still a sale.
    """
    result = await db.execute(
        select(TicketSale)
        .where(
            TicketSale.payment_status == PaymentStatus.PENDING.value,
            TicketSale.stripe_checkout_session_id.is_not(None),
            TicketSale.created_at < now - expire_after,
        )
        .order_by(TicketSale.id)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())
