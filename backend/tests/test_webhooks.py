"""
Tests for webhook reconciliation.

Verifies:
- Signature verification gates every delivery
- Completion applies inventory exactly once, across redeliveries and the
  buyer's verify-payment fallback
- Out-of-order deliveries never move a sale out of a terminal status
"""

import json

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.routes import webhooks as webhooks_route
from ticketing.services import sale_ledger
from conftest import make_event, sign_payload


def completed_session(session_id: str, sale_id: int, intent: str = "pi_test_1") -> dict:
    return {
        "id": session_id,
        "object": "checkout.session",
        "status": "complete",
        "payment_status": "paid",
        "payment_intent": intent,
        "metadata": {"ticket_sale_id": str(sale_id)},
    }


async def sale_for(db: AsyncSession, session_id: str):
    return await sale_ledger.get_sale_by_session(db, session_id)


async def sold(db: AsyncSession, ticket_type) -> int:
    await db.refresh(ticket_type)
    return ticket_type.quantity_sold


@pytest.mark.asyncio
async def test_invalid_signature_rejected(client: AsyncClient, checkout, db_session, ticket_type):
    sale = await sale_for(db_session, checkout["sessionId"])
    payload = json.dumps(
        make_event("checkout.session.completed", completed_session(checkout["sessionId"], sale.id))
    )

    response = await client.post(
        "/api/v1/webhooks/stripe",
        content=payload,
        headers={"stripe-signature": sign_payload(payload, secret="whsec_wrong")},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid signature"}
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "pending"
    assert await sold(db_session, ticket_type) == 0


@pytest.mark.asyncio
async def test_missing_signature_rejected(client: AsyncClient):
    response = await client.post("/api/v1/webhooks/stripe", content="{}")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_checkout_completed_marks_sale_paid(
    checkout, post_webhook, db_session, ticket_type
):
    """Scenario: 2 tickets on a fresh type -> completed, quantity_sold 2."""
    sale = await sale_for(db_session, checkout["sessionId"])

    response = await post_webhook(
        make_event("checkout.session.completed", completed_session(checkout["sessionId"], sale.id))
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}

    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "completed"
    assert sale.paid_at is not None
    assert sale.stripe_payment_intent_id == "pi_test_1"
    assert await sold(db_session, ticket_type) == 2


@pytest.mark.asyncio
async def test_redelivery_is_idempotent(checkout, post_webhook, db_session, ticket_type):
    sale = await sale_for(db_session, checkout["sessionId"])
    event = make_event(
        "checkout.session.completed", completed_session(checkout["sessionId"], sale.id)
    )

    first = await post_webhook(event)
    second = await post_webhook(event)
    # same payload under a different delivery id
    third = await post_webhook({**event, "id": "evt_test_2"})

    assert [r.status_code for r in (first, second, third)] == [200, 200, 200]
    assert await sold(db_session, ticket_type) == 2


@pytest.mark.asyncio
async def test_unpaid_session_is_ignored(checkout, post_webhook, db_session, ticket_type):
    sale = await sale_for(db_session, checkout["sessionId"])
    session = {
        **completed_session(checkout["sessionId"], sale.id),
        "status": "open",
        "payment_status": "unpaid",
    }

    response = await post_webhook(make_event("checkout.session.completed", session))

    assert response.status_code == 200
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "pending"
    assert await sold(db_session, ticket_type) == 0


@pytest.mark.asyncio
async def test_expired_after_completed_is_noop(checkout, post_webhook, db_session, ticket_type):
    """A late expiry must not cancel a paid sale."""
    sale = await sale_for(db_session, checkout["sessionId"])
    await post_webhook(
        make_event("checkout.session.completed", completed_session(checkout["sessionId"], sale.id))
    )

    response = await post_webhook(
        make_event(
            "checkout.session.expired",
            {"id": checkout["sessionId"], "metadata": {"ticket_sale_id": str(sale.id)}},
            event_id="evt_test_expired",
        )
    )

    assert response.status_code == 200
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "completed"
    assert sale.cancelled_at is None
    assert await sold(db_session, ticket_type) == 2


@pytest.mark.asyncio
async def test_expired_cancels_pending_sale(checkout, post_webhook, db_session):
    sale = await sale_for(db_session, checkout["sessionId"])

    response = await post_webhook(
        make_event(
            "checkout.session.expired",
            {"id": checkout["sessionId"], "metadata": {"ticket_sale_id": str(sale.id)}},
        )
    )

    assert response.status_code == 200
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "cancelled"
    assert sale.cancelled_at is not None


@pytest.mark.asyncio
async def test_refund_on_pending_sale_is_noop(checkout, post_webhook, db_session):
    """Refund for a sale that was never completed leaves it pending."""
    sale = await sale_for(db_session, checkout["sessionId"])
    sale.stripe_payment_intent_id = "pi_pending"
    await db_session.commit()

    response = await post_webhook(
        make_event("charge.refunded", {"id": "ch_test_1", "payment_intent": "pi_pending"})
    )

    assert response.status_code == 200
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "pending"
    assert sale.refunded_at is None


@pytest.mark.asyncio
async def test_refund_after_completion(checkout, post_webhook, db_session, ticket_type):
    sale = await sale_for(db_session, checkout["sessionId"])
    await post_webhook(
        make_event(
            "checkout.session.completed",
            completed_session(checkout["sessionId"], sale.id, intent="pi_refund_me"),
        )
    )

    response = await post_webhook(
        make_event(
            "charge.refunded",
            {"id": "ch_test_1", "payment_intent": "pi_refund_me"},
            event_id="evt_test_refund",
        )
    )

    assert response.status_code == 200
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "refunded"
    assert sale.refunded_at is not None
    # refunds do not return tickets to inventory
    assert await sold(db_session, ticket_type) == 2


@pytest.mark.asyncio
async def test_payment_failed_marks_pending_sale_failed(checkout, post_webhook, db_session):
    sale = await sale_for(db_session, checkout["sessionId"])

    response = await post_webhook(
        make_event(
            "payment_intent.payment_failed",
            {"id": "pi_failed", "metadata": {"ticket_sale_id": str(sale.id)}},
        )
    )

    assert response.status_code == 200
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "failed"
    assert sale.stripe_payment_intent_id == "pi_failed"


@pytest.mark.asyncio
async def test_payment_failed_after_completion_is_noop(
    checkout, post_webhook, db_session, ticket_type
):
    sale = await sale_for(db_session, checkout["sessionId"])
    await post_webhook(
        make_event("checkout.session.completed", completed_session(checkout["sessionId"], sale.id))
    )

    await post_webhook(
        make_event(
            "payment_intent.payment_failed",
            {"id": "pi_test_1", "metadata": {"ticket_sale_id": str(sale.id)}},
            event_id="evt_test_failed",
        )
    )

    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "completed"
    assert await sold(db_session, ticket_type) == 2


@pytest.mark.asyncio
async def test_payment_intent_succeeded_is_acknowledged_only(
    checkout, post_webhook, db_session, ticket_type
):
    sale = await sale_for(db_session, checkout["sessionId"])

    response = await post_webhook(
        make_event(
            "payment_intent.succeeded",
            {"id": "pi_test_1", "metadata": {"ticket_sale_id": str(sale.id)}},
        )
    )

    assert response.status_code == 200
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "pending"
    assert await sold(db_session, ticket_type) == 0


@pytest.mark.asyncio
async def test_unknown_event_type_acknowledged(post_webhook):
    response = await post_webhook(make_event("customer.created", {"id": "cus_1"}))
    assert response.status_code == 200
    assert response.json() == {"received": True}


@pytest.mark.asyncio
async def test_missing_metadata_acknowledged(checkout, post_webhook, db_session):
    session = completed_session(checkout["sessionId"], 0)
    session["metadata"] = {}

    response = await post_webhook(make_event("checkout.session.completed", session))

    assert response.status_code == 200
    sale = await sale_for(db_session, checkout["sessionId"])
    assert sale.payment_status == "pending"


@pytest.mark.asyncio
async def test_unknown_sale_acknowledged(post_webhook):
    response = await post_webhook(
        make_event("checkout.session.completed", completed_session("cs_unknown", 424242))
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_webhook_and_verify_payment_complete_once(
    client: AsyncClient, checkout, post_webhook, auth_headers, fake_gateway, db_session, ticket_type
):
    """Whichever path arrives second is a no-op."""
    session_id = checkout["sessionId"]
    sale = await sale_for(db_session, session_id)
    fake_gateway.mark_paid(session_id)

    verify = await client.post(
        "/api/v1/sales/verify-payment", json={"sessionId": session_id}, headers=auth_headers
    )
    assert verify.status_code == 200
    assert verify.json() == {"ok": True, "paymentStatus": "completed"}

    response = await post_webhook(
        make_event("checkout.session.completed", completed_session(session_id, sale.id))
    )
    assert response.status_code == 200

    again = await client.post(
        "/api/v1/sales/verify-payment", json={"sessionId": session_id}, headers=auth_headers
    )
    assert again.json() == {"ok": True, "paymentStatus": "completed"}

    assert await sold(db_session, ticket_type) == 2


@pytest.mark.asyncio
async def test_paid_sale_over_capacity_still_completes(
    checkout, post_webhook, db_session, ticket_type
):
    """The money is taken: the sale completes even when the counter cannot move."""
    sale = await sale_for(db_session, checkout["sessionId"])
    ticket_type.quantity_sold = 99
    await db_session.commit()

    response = await post_webhook(
        make_event("checkout.session.completed", completed_session(checkout["sessionId"], sale.id))
    )

    assert response.status_code == 200
    sale = await sale_ledger.get_sale(db_session, sale.id)
    assert sale.payment_status == "completed"
    assert await sold(db_session, ticket_type) == 99


@pytest.mark.asyncio
async def test_processing_failure_hides_internal_details(
    checkout, post_webhook, db_session, monkeypatch
):
    async def failing(db, event):
        raise RuntimeError("(sqlite3.OperationalError) no such table: ticket_sales")

    monkeypatch.setattr(webhooks_route.reconciler, "handle", failing)
    sale = await sale_for(db_session, checkout["sessionId"])

    response = await post_webhook(
        make_event("checkout.session.completed", completed_session(checkout["sessionId"], sale.id))
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Webhook processing failed"}
    assert "ticket_sales" not in response.text
