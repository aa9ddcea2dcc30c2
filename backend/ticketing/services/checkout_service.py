"""
Checkout session broker.

Turns a buyer's ticket selection into a pending sale and a hosted checkout
session:

  1. Load ticket type, organizer and fee settings (NotFound aborts early)
  2. Validate the purchase server-side (ownership, payments set up,
     active ticket, sales window, per-purchase limits, remaining capacity)
  3. Compute fees authoritatively; client-submitted totals are never used
  4. Resolve the payer identity by email
  5. Insert the pending sale and COMMIT, so the attempt survives any
     processor failure below
  6. Create the checkout session carrying the sale id as metadata
  7. Store the session id on the sale

No retries happen here: a retry from the caller creates a new pending sale.
Orphaned pending rows are cancelled by the housekeeping sweep.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import get_settings
from ticketing.core.errors import (
    ForbiddenError,
    NotFoundError,
    PaymentsNotConfiguredError,
    ValidationError,
)
from ticketing.core.logging import get_logger
from ticketing.models.fee_settings import EventTicketSettings
from ticketing.models.ticket_type import TicketType
from ticketing.models.user import User
from ticketing.services import sale_ledger
from ticketing.services.fee_calculator import FeeBreakdown, FeeSettingsSnapshot, calculate_fees
from ticketing.services.interfaces.payment_gateway import CheckoutSessionRequest, PaymentGateway

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class CheckoutResult:
    sale_id: int
    session_id: str
    url: str
    fees: FeeBreakdown


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


async def get_ticket_type(db: AsyncSession, ticket_type_id: int) -> TicketType:
    # populate_existing: availability must reflect the committed quantity_sold
    result = await db.execute(
        select(TicketType)
        .where(TicketType.id == ticket_type_id)
        .execution_options(populate_existing=True)
    )
    ticket_type = result.scalar_one_or_none()
    if ticket_type is None:
        raise NotFoundError("Ticket type not found")
    return ticket_type


async def get_fee_settings(db: AsyncSession, event_id: int) -> FeeSettingsSnapshot:
    result = await db.execute(
        select(EventTicketSettings).where(EventTicketSettings.event_id == event_id)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFoundError("Ticket settings not found for this event")
    return FeeSettingsSnapshot.from_model(row)


def validate_purchase(ticket_type: TicketType, quantity: int, now: datetime) -> None:
    if not ticket_type.is_active:
        raise ValidationError("This ticket type is not on sale")

    starts = _as_utc(ticket_type.sales_start_date)
    ends = _as_utc(ticket_type.sales_end_date)
    if starts is not None and now < starts:
        raise ValidationError("Ticket sales have not started yet")
    if ends is not None and now > ends:
        raise ValidationError("Ticket sales have ended")

    if quantity < ticket_type.min_per_purchase:
        raise ValidationError(
            f"Minimum of {ticket_type.min_per_purchase} tickets per purchase"
        )
    if quantity > ticket_type.max_per_purchase:
        raise ValidationError(
            f"Maximum of {ticket_type.max_per_purchase} tickets per purchase"
        )
    if quantity > ticket_type.available:
        raise ValidationError(
            f"Not enough tickets. Requested: {quantity}, Available: {ticket_type.available}"
        )


async def quote_fees(db: AsyncSession, ticket_type_id: int, quantity: int) -> FeeBreakdown:
    """Fee preview with exactly the inputs checkout will charge."""
    ticket_type = await get_ticket_type(db, ticket_type_id)
    fee_settings = await get_fee_settings(db, ticket_type.event_id)
    return calculate_fees(Decimal(ticket_type.price), quantity, fee_settings)


async def create_ticket_checkout(
    db: AsyncSession,
    gateway: PaymentGateway,
    buyer: User,
    ticket_type_id: int,
    quantity: int,
    event_id: int,
    origin: str,
) -> CheckoutResult:
    ticket_type = await get_ticket_type(db, ticket_type_id)
    event = ticket_type.event
    if event.id != event_id:
        raise ValidationError("Ticket type does not belong to this event")

    organizer = event.organizer
    if organizer is None:
        raise NotFoundError("Organizer not found")
    if organizer.user_id == buyer.id:
        raise ForbiddenError("Organizers cannot buy tickets for their own events")
    if not organizer.can_accept_payments:
        raise PaymentsNotConfiguredError()

    fee_settings = await get_fee_settings(db, event_id)
    validate_purchase(ticket_type, quantity, datetime.now(timezone.utc))

    fees = calculate_fees(Decimal(ticket_type.price), quantity, fee_settings)
    logger.info(
        "fees_calculated",
        ticket_type_id=ticket_type_id,
        quantity=quantity,
        subtotal=str(fees.subtotal),
        platform_fee=str(fees.platform_fee),
        processing_fee=str(fees.processing_fee),
        total_amount=str(fees.total_amount),
        fee_payer=fees.fee_payer,
    )

    customer_id = await gateway.find_or_create_customer(buyer.email, buyer.id)

    sale = await sale_ledger.create_pending_sale(
        db,
        sale_ledger.SaleDraft(
            user_id=buyer.id,
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            quantity=quantity,
            unit_price=fees.unit_price,
            subtotal=fees.subtotal,
            platform_fee=fees.platform_fee,
            payment_processing_fee=fees.processing_fee,
            total_amount=fees.total_amount,
            buyer_name=buyer.display_name or buyer.email,
            buyer_email=buyer.email,
            buyer_phone=buyer.phone,
        ),
    )
    await db.commit()

    metadata = {
        "ticket_sale_id": str(sale.id),
        "event_id": str(event_id),
        "user_id": str(buyer.id),
        "organizer_id": str(organizer.id),
    }
    session = await gateway.create_checkout_session(
        CheckoutSessionRequest(
            customer_id=customer_id,
            product_name=f"{ticket_type.name} - {event.title}",
            product_description=ticket_type.description,
            amount_minor_units=fees.total_minor_units,
            currency=settings.CHECKOUT_CURRENCY,
            application_fee_amount=fees.application_fee_amount,
            destination_account_id=organizer.stripe_account_id,
            success_url=f"{origin}/ticket-success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{origin}/event/{event_id}?payment=cancelled",
            metadata=metadata,
        )
    )

    await sale_ledger.attach_checkout_session(db, sale.id, session.session_id)
    await db.commit()

    logger.info(
        "checkout_session_created",
        sale_id=sale.id,
        session_id=session.session_id,
        user_id=buyer.id,
    )
    return CheckoutResult(
        sale_id=sale.id, session_id=session.session_id, url=session.url, fees=fees
    )
