"""
Tests for startup configuration checks and health endpoints.
"""

import pytest
from httpx import AsyncClient

from ticketing.core.config import ConfigurationError, Settings, ensure_required_settings
from ticketing.core.logging import redact_secrets


def test_missing_processor_secrets_fail_startup():
    settings = Settings(STRIPE_SECRET_KEY="", STRIPE_WEBHOOK_SECRET="")

    with pytest.raises(ConfigurationError) as exc_info:
        ensure_required_settings(settings)

    assert "STRIPE_SECRET_KEY" in str(exc_info.value)
    assert "STRIPE_WEBHOOK_SECRET" in str(exc_info.value)


def test_complete_settings_pass():
    settings = Settings(STRIPE_SECRET_KEY="sk_test_x", STRIPE_WEBHOOK_SECRET="whsec_x")
    ensure_required_settings(settings)


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["cache"]["status"] == "disabled"


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "webhook_signature_failures_total" in response.text


@pytest.mark.asyncio
async def test_request_id_is_propagated(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "req-abc"})

    assert response.headers["X-Request-ID"] == "req-abc"
    assert response.headers["X-Response-Time"].endswith("ms")


def test_log_processor_masks_credentials():
    event = redact_secrets(
        None,
        "info",
        {"event": "webhook_received", "stripe_signature": "t=1,v1=abc", "event_id": "evt_1"},
    )

    assert event["stripe_signature"] == "***"
    assert event["event_id"] == "evt_1"
