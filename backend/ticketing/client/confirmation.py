"""
Confirmation client for the page the buyer lands on after checkout.

Flow:
  1) GET /api/v1/sales/by-session/{session_id}, retried with growing backoff
     while the sale is not visible yet (404)
  2) If the sale is still pending, POST /api/v1/sales/verify-payment once
     (the webhook may be late) and read the sale again; if that fails the
     pending sale already found is shown as is
  3) Return a TicketCredential whose qr_payload is rendered as the
     scannable code

If the sale never shows up, ConfirmationError is raised and the caller
shows a "could not load ticket" message.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from ticketing.core.logging import get_logger

logger = get_logger(__name__)

SALES_PATH = "/api/v1/sales"


class ConfirmationError(Exception):
    """The sale for a session could not be loaded."""


@dataclass(frozen=True)
class TicketCredential:
    sale_id: int
    payment_status: str
    quantity: int
    total_amount: str
    buyer_name: str
    event_title: str
    ticket_type_name: str
    event_date: Optional[str]
    event_location: Optional[str]
    qr_payload: str

    @property
    def qr_data(self) -> dict:
        return json.loads(self.qr_payload)

    @classmethod
    def from_response(cls, data: dict) -> "TicketCredential":
        return cls(
            sale_id=data["id"],
            payment_status=data["payment_status"],
            quantity=data["quantity"],
            total_amount=str(data["total_amount"]),
            buyer_name=data["buyer_name"],
            event_title=data["event_title"],
            ticket_type_name=data["ticket_type_name"],
            event_date=data.get("event_date"),
            event_location=data.get("event_location"),
            qr_payload=data["qr_payload"],
        )


class TicketConfirmationClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        max_attempts: int = 5,
        base_delay: float = 0.6,
        backoff_step: float = 0.4,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.http = http
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.backoff_step = backoff_step
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Wait after the given (1-based) failed attempt."""
        return self.base_delay + self.backoff_step * attempt

    async def fetch_sale(self, session_id: str) -> Optional[dict]:
        response = await self.http.get(f"{SALES_PATH}/by-session/{session_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def fetch_with_retry(self, session_id: str) -> Optional[dict]:
        for attempt in range(1, self.max_attempts + 1):
            sale = await self.fetch_sale(session_id)
            if sale is not None:
                return sale
            if attempt < self.max_attempts:
                delay = self.delay_for(attempt)
                logger.info(
                    "sale_not_visible_yet", session_id=session_id, attempt=attempt, retry_in=delay
                )
                await self._sleep(delay)
        return None

    async def verify_payment(self, session_id: str) -> dict:
        response = await self.http.post(
            f"{SALES_PATH}/verify-payment", json={"sessionId": session_id}
        )
        response.raise_for_status()
        return response.json()

    async def confirm(self, session_id: str) -> TicketCredential:
        if not session_id:
            raise ConfirmationError("Session id not found")

        try:
            sale = await self.fetch_with_retry(session_id)
        except httpx.HTTPError as e:
            raise ConfirmationError(f"Could not load ticket: {e}") from e
        if sale is None:
            raise ConfirmationError("Ticket not found")

        if sale["payment_status"] == "pending":
            sale = await self._refresh_pending(session_id, sale)

        return TicketCredential.from_response(sale)

    async def _refresh_pending(self, session_id: str, sale: dict) -> dict:
        """Best effort: a failed verification still shows the ticket as found."""
        try:
            result = await self.verify_payment(session_id)
            logger.info("payment_verified", session_id=session_id, ok=result.get("ok"))
            return await self.fetch_sale(session_id) or sale
        except httpx.HTTPError as e:
            logger.warning("payment_verification_failed", session_id=session_id, error=str(e))
            return sale
