"""
Payment gateway interface.
Wraps the external payment processor so checkout and reconciliation logic
never talk to the SDK directly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class CheckoutSessionRequest:
    customer_id: str
    product_name: str
    product_description: Optional[str]
    amount_minor_units: int
    currency: str
    application_fee_amount: int
    destination_account_id: str
    success_url: str
    cancel_url: str
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class CheckoutSessionResult:
    session_id: str
    url: str


@dataclass(frozen=True)
class CheckoutSessionStatus:
    session_id: str
    status: Optional[str]
    payment_status: Optional[str]
    payment_intent_id: Optional[str]

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid" or self.status == "complete"


class PaymentGateway(ABC):
    """
    Interface for the external payment processor.

    Implementations:
    - StripeGateway: hosted Stripe Checkout with Connect destination charges
    """

    @abstractmethod
    async def find_or_create_customer(self, email: str, user_id: int) -> str:
        """Return the processor's payer id for `email`, creating it once."""

    @abstractmethod
    async def create_checkout_session(
        self, request: CheckoutSessionRequest
    ) -> CheckoutSessionResult:
        """Create a hosted checkout session. Raises UpstreamError on failure."""

    @abstractmethod
    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionStatus:
        """Fetch the current state of a checkout session."""

    @abstractmethod
    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Authenticate a webhook body and return the parsed event.
        Raises InvalidSignatureError if the signature is missing or wrong.
        """
