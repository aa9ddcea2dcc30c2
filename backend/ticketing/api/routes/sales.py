"""
Buyer sale endpoints used by the confirmation page.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.security import get_current_user
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.sale import (
    SaleConfirmation, SaleResponse, VerifyPaymentRequest, VerifyPaymentResponse,
)
from ticketing.services import sale_ledger
from ticketing.services.confirmation_service import (
    build_confirmation, get_owned_sale_by_session, verify_payment,
)
from ticketing.services.gateway_factory import get_payment_gateway
from ticketing.services.interfaces.payment_gateway import PaymentGateway

router = APIRouter(prefix="/sales", tags=["Sales"])


@router.get("/", response_model=list[SaleResponse])
async def list_my_sales(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get all ticket purchases of the authenticated user."""
    return await sale_ledger.list_user_sales(db, user.id)


@router.get("/by-session/{session_id}", response_model=SaleConfirmation)
async def get_sale_by_session(
    session_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Sale summary and scannable code for the checkout session the buyer was
    redirected back from. 404 until the sale is visible.
    """
    sale = await get_owned_sale_by_session(db, session_id, user)
    return await build_confirmation(db, sale)


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
async def verify_payment_endpoint(
    verify_data: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Complete a still-pending sale if the processor reports it paid."""
    result = await verify_payment(db, gateway, verify_data.session_id, user)
    return VerifyPaymentResponse(ok=result.ok, payment_status=result.payment_status)
