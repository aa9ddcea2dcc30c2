from ticketing.schemas.checkout import (
    CheckoutCreate, CheckoutResponse, FeeQuoteRequest, FeeQuoteResponse,
)
from ticketing.schemas.sale import (
    SaleResponse, SaleConfirmation, VerifyPaymentRequest, VerifyPaymentResponse,
)
from ticketing.schemas.webhook import WebhookAck

__all__ = [
    "CheckoutCreate", "CheckoutResponse", "FeeQuoteRequest", "FeeQuoteResponse",
    "SaleResponse", "SaleConfirmation", "VerifyPaymentRequest", "VerifyPaymentResponse",
    "WebhookAck",
]
