"""
Inventory updater for ticket types.

`quantity_sold` is incremented with a single atomic UPDATE
(`SET quantity_sold = quantity_sold + :n`), never read-modify-write from
application memory, so concurrent completions for the same ticket type
cannot lose updates.

The UPDATE always carries the capacity guard
`quantity_sold + :n <= quantity`, so the CHECK constraint on the table is
never what stops an oversell. A rejected increment means the buyer has
already paid for tickets that do not exist: it is logged and counted for
manual reconciliation, and the sale itself stays completed.

Callers are responsible for invoking this at most once per sale; the
conditional sale transition provides that guarantee.
"""

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_inventory_increment
from ticketing.db.base import utcnow
from ticketing.models.ticket_type import TicketType

logger = get_logger(__name__)


async def increment_sold(
    db: AsyncSession,
    ticket_type_id: int,
    quantity_to_add: int,
) -> bool:
    if quantity_to_add <= 0:
        raise ValueError("quantity_to_add must be positive")

    criteria = [
        TicketType.id == ticket_type_id,
        TicketType.quantity_sold + quantity_to_add <= TicketType.quantity,
    ]

    result = await db.execute(
        update(TicketType)
        .where(*criteria)
        .values(
            quantity_sold=TicketType.quantity_sold + quantity_to_add,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    applied = result.rowcount == 1
    record_inventory_increment(applied)

    if applied:
        logger.info(
            "inventory_incremented",
            ticket_type_id=ticket_type_id,
            quantity=quantity_to_add,
        )
    else:
        logger.error(
            "inventory_oversell_detected",
            ticket_type_id=ticket_type_id,
            quantity=quantity_to_add,
        )
    return applied
