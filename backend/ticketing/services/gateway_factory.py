"""
Payment gateway factory.
Provides the process-wide gateway instance used as a FastAPI dependency.
"""

from typing import Optional

from ticketing.core.config import get_settings
from ticketing.services.interfaces.payment_gateway import PaymentGateway
from ticketing.services.stripe_gateway import StripeGateway

_gateway: Optional[PaymentGateway] = None


def build_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return StripeGateway(
        api_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        api_version=settings.STRIPE_API_VERSION,
    )


def get_payment_gateway() -> PaymentGateway:
    """Get payment gateway singleton."""
    global _gateway
    if _gateway is None:
        _gateway = build_payment_gateway()
    return _gateway
