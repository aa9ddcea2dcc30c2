"""
Pydantic schemas for sale lookup and payment verification.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class SaleResponse(BaseModel):
    id: int
    event_id: int
    ticket_type_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    platform_fee: Decimal
    payment_processing_fee: Decimal
    total_amount: Decimal
    payment_status: str
    created_at: datetime
    paid_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SaleConfirmation(BaseModel):
    id: int
    payment_status: str
    quantity: int
    total_amount: Decimal
    buyer_name: str
    event_title: str
    event_date: Optional[datetime] = None
    event_location: Optional[str] = None
    ticket_type_name: str
    qr_payload: str


class VerifyPaymentRequest(BaseModel):
    session_id: str = Field(..., alias="sessionId", min_length=1)

    model_config = {"populate_by_name": True}


class VerifyPaymentResponse(BaseModel):
    ok: bool
    payment_status: str = Field(..., serialization_alias="paymentStatus")
