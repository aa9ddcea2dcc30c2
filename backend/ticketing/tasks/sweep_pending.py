"""
Housekeeping: close pending sales that can no longer be paid.

Run periodically (cron, k8s CronJob):
  ticketing-sweep

Sales with an expired checkout session are checked with the processor first,
so a paid session whose webhook never arrived is completed instead.
"""

import asyncio
from datetime import timedelta
from typing import Optional

from ticketing.core.config import get_settings, ensure_required_settings
from ticketing.core.logging import setup_logging, get_logger
from ticketing.db.base import utcnow
from ticketing.db.session import SessionLocal, engine
from ticketing.services.gateway_factory import get_payment_gateway
from ticketing.services.interfaces.payment_gateway import PaymentGateway
from ticketing.services.sweep_service import SweepResult, sweep_stale_sales

logger = get_logger(__name__)


async def sweep_once(gateway: Optional[PaymentGateway] = None) -> SweepResult:
    settings = get_settings()
    gateway = gateway or get_payment_gateway()
    async with SessionLocal() as session:
        return await sweep_stale_sales(
            session,
            gateway,
            now=utcnow(),
            orphan_after=timedelta(minutes=settings.ORPHAN_SALE_MINUTES),
            expire_after=timedelta(hours=settings.STALE_SALE_HOURS),
        )


async def _run() -> SweepResult:
    try:
        return await sweep_once()
    finally:
        await engine.dispose()


def main() -> None:
    setup_logging()
    ensure_required_settings(get_settings())
    result = asyncio.run(_run())
    logger.info("sweep_finished", cancelled=result.cancelled, completed=result.completed)


if __name__ == "__main__":
    main()
