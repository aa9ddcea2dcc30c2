"""
Housekeeping for pending sales that can no longer be paid.

Two kinds of stale rows:
  - orphans: the checkout session was never created (processor failure
    during checkout). Cancelled outright.
  - expired: the session is older than any session can live. The processor
    is asked first, because a paid session whose webhook was lost must end
    `completed` with its tickets counted, not `cancelled`. Webhook retries
    outlive the session, so the sweep cannot assume silence means unpaid.

Each expired sale is committed on its own so one processor failure does not
hold back the rest; a sale the processor could not be asked about stays
pending for the next run.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.errors import UpstreamError
from ticketing.core.logging import get_logger
from ticketing.models.sale import PaymentStatus
from ticketing.services import sale_ledger
from ticketing.services.interfaces.payment_gateway import PaymentGateway
from ticketing.services.settlement_service import complete_sale

logger = get_logger(__name__)


@dataclass
class SweepResult:
    orphans_cancelled: int = 0
    expired_cancelled: int = 0
    completed: int = 0
    skipped: int = 0

    @property
    def cancelled(self) -> int:
        return self.orphans_cancelled + self.expired_cancelled


async def sweep_stale_sales(
    db: AsyncSession,
    gateway: PaymentGateway,
    now: datetime,
    orphan_after: timedelta,
    expire_after: timedelta,
) -> SweepResult:
    result = SweepResult()

    result.orphans_cancelled = await sale_ledger.cancel_orphan_pending_sales(
        db, now=now, orphan_after=orphan_after
    )
    await db.commit()

    for sale in await sale_ledger.list_expired_pending_sales(db, now, expire_after):
        try:
            status = await gateway.retrieve_checkout_session(sale.stripe_checkout_session_id)
        except UpstreamError:
            result.skipped += 1
            logger.warning(
                "sweep_session_lookup_failed",
                sale_id=sale.id,
                session_id=sale.stripe_checkout_session_id,
            )
            continue

        if status.is_paid:
            if await complete_sale(db, sale, status.payment_intent_id, source="sweep"):
                result.completed += 1
        elif await sale_ledger.transition_sale(
            db,
            sale.id,
            from_statuses={PaymentStatus.PENDING},
            to_status=PaymentStatus.CANCELLED,
            cancelled_at=now,
        ):
            result.expired_cancelled += 1
        await db.commit()

    logger.info(
        "stale_sales_swept",
        orphans_cancelled=result.orphans_cancelled,
        expired_cancelled=result.expired_cancelled,
        completed=result.completed,
        skipped=result.skipped,
    )
    return result
