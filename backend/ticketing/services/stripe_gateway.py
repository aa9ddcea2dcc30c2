"""
Stripe implementation of the payment gateway.

Checkout sessions are destination charges: the buyer pays the platform, the
organizer's connected account receives the transfer, and the platform keeps
`application_fee_amount`.

The Stripe SDK is blocking; every network call runs in Starlette's
threadpool so the event loop is never stalled by the processor.
"""

import json
from typing import Optional

import stripe
from starlette.concurrency import run_in_threadpool

from ticketing.core.errors import InvalidSignatureError, UpstreamError
from ticketing.core.logging import get_logger
from ticketing.services.interfaces.payment_gateway import (
    CheckoutSessionRequest,
    CheckoutSessionResult,
    CheckoutSessionStatus,
    PaymentGateway,
)

logger = get_logger(__name__)


def _payment_intent_id(value) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None)


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: str, webhook_secret: str, api_version: Optional[str] = None):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.api_version = api_version

    def _request_options(self) -> dict:
        options = {"api_key": self.api_key}
        if self.api_version:
            options["stripe_version"] = self.api_version
        return options

    async def find_or_create_customer(self, email: str, user_id: int) -> str:
        try:
            customers = await run_in_threadpool(
                stripe.Customer.list, email=email, limit=1, **self._request_options()
            )
            if customers.data:
                customer_id = customers.data[0].id
                logger.info("customer_found", customer_id=customer_id)
                return customer_id

            customer = await run_in_threadpool(
                stripe.Customer.create,
                email=email,
                metadata={"user_id": str(user_id)},
                **self._request_options(),
            )
        except stripe.StripeError as e:
            logger.error("customer_lookup_failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamError("Payment provider is unavailable, please try again") from e

        logger.info("customer_created", customer_id=customer.id)
        return customer.id

    async def create_checkout_session(
        self, request: CheckoutSessionRequest
    ) -> CheckoutSessionResult:
        params = {
            "customer": request.customer_id,
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": request.currency,
                        "product_data": {
                            "name": request.product_name,
                            **(
                                {"description": request.product_description}
                                if request.product_description
                                else {}
                            ),
                        },
                        "unit_amount": request.amount_minor_units,
                    },
                    "quantity": 1,
                }
            ],
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "payment_intent_data": {
                "application_fee_amount": request.application_fee_amount,
                "transfer_data": {"destination": request.destination_account_id},
                "metadata": request.metadata,
            },
            "metadata": request.metadata,
        }

        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create, **params, **self._request_options()
            )
        except stripe.StripeError as e:
            logger.error("checkout_session_failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamError("Could not start checkout, please try again") from e

        return CheckoutSessionResult(session_id=session.id, url=session.url)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionStatus:
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.retrieve, session_id, **self._request_options()
            )
        except stripe.StripeError as e:
            logger.error("checkout_session_retrieve_failed", session_id=session_id, error=str(e))
            raise UpstreamError("Could not verify payment, please try again") from e

        return CheckoutSessionStatus(
            session_id=session.id,
            status=getattr(session, "status", None),
            payment_status=getattr(session, "payment_status", None),
            payment_intent_id=_payment_intent_id(getattr(session, "payment_intent", None)),
        )

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        if not signature:
            raise InvalidSignatureError("Missing stripe-signature header")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            raise InvalidSignatureError() from e
        except ValueError as e:
            logger.warning("webhook_payload_invalid", error=str(e))
            raise InvalidSignatureError("Invalid payload") from e

        return json.loads(payload)
