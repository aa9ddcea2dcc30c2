"""
Checkout endpoints: fee preview and hosted checkout session creation.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import get_settings
from ticketing.core.errors import DomainError, UpstreamError
from ticketing.core.logging import get_logger
from ticketing.core.metrics import checkout_latency, record_checkout_attempt
from ticketing.core.security import get_current_user
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.checkout import (
    CheckoutCreate, CheckoutResponse, FeeQuoteRequest, FeeQuoteResponse,
)
from ticketing.services.checkout_service import create_ticket_checkout, quote_fees
from ticketing.services.gateway_factory import get_payment_gateway
from ticketing.services.interfaces.payment_gateway import PaymentGateway

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/quote", response_model=FeeQuoteResponse)
async def quote(quote_data: FeeQuoteRequest, db: AsyncSession = Depends(get_db)):
    """Preview the exact amounts checkout would charge for this selection."""
    fees = await quote_fees(db, quote_data.ticket_type_id, quote_data.quantity)
    return FeeQuoteResponse.model_validate(fees)


@router.post("/sessions", response_model=CheckoutResponse)
async def create_checkout_session(
    checkout_data: CheckoutCreate,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Create a pending sale and a hosted checkout session for it.

    Returns the processor URL to redirect the buyer to. On processor failure
    the pending sale is kept as a record of the attempt.
    """
    origin = request.headers.get("origin") or settings.FRONTEND_URL
    logger.info(
        "checkout_requested",
        user_id=user.id,
        ticket_type_id=checkout_data.ticket_type_id,
        quantity=checkout_data.quantity,
        event_id=checkout_data.event_id,
    )

    with checkout_latency.time():
        try:
            result = await create_ticket_checkout(
                db,
                gateway,
                user,
                ticket_type_id=checkout_data.ticket_type_id,
                quantity=checkout_data.quantity,
                event_id=checkout_data.event_id,
                origin=origin,
            )
        except UpstreamError:
            record_checkout_attempt("upstream_error")
            raise
        except DomainError:
            record_checkout_attempt("rejected")
            raise

    record_checkout_attempt("created")
    return CheckoutResponse(url=result.url, session_id=result.session_id)
