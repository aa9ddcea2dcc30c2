"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment_gateway import (
    PaymentGateway,
    CheckoutSessionRequest,
    CheckoutSessionResult,
    CheckoutSessionStatus,
)

__all__ = [
    'PaymentGateway',
    'CheckoutSessionRequest',
    'CheckoutSessionResult',
    'CheckoutSessionStatus',
]
