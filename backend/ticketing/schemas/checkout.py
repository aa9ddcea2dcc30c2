"""
Pydantic schemas for checkout request/response validation.
Wire names are camelCase to match the web client.
"""

from decimal import Decimal
from pydantic import BaseModel, Field


class CheckoutCreate(BaseModel):
    ticket_type_id: int = Field(..., alias="ticketTypeId")
    quantity: int = Field(..., gt=0)
    event_id: int = Field(..., alias="eventId")

    model_config = {"populate_by_name": True}


class CheckoutResponse(BaseModel):
    url: str
    session_id: str = Field(..., serialization_alias="sessionId")


class FeeQuoteRequest(BaseModel):
    ticket_type_id: int = Field(..., alias="ticketTypeId")
    quantity: int = Field(..., gt=0)

    model_config = {"populate_by_name": True}


class FeeQuoteResponse(BaseModel):
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    platform_fee: Decimal
    processing_fee: Decimal
    total_amount: Decimal
    fee_payer: str

    model_config = {"from_attributes": True}
