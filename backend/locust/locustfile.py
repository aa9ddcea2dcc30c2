"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags replay     # Webhook redelivery storm
  locust -f locustfile.py --tags checkout   # Checkout session creation
  locust -f locustfile.py --tags edge       # Bad input and bad signatures
  locust -f locustfile.py                   # All tests

Environment:
  LOAD_USER_ID          buyer user id (a token is minted with SECRET_KEY)
  LOAD_TICKET_TYPE_ID   ticket type to buy
  LOAD_EVENT_ID         event the ticket type belongs to
  LOAD_SALE_ID          pending sale targeted by the replay storm
  LOAD_SESSION_ID       checkout session id of that sale
  STRIPE_WEBHOOK_SECRET signing secret the API verifies with
"""

import hashlib
import hmac
import json
import os
import random
import time

from locust import HttpUser, task, between, tag, events

from ticketing.core.security import create_access_token

USER_ID = int(os.environ.get("LOAD_USER_ID", "1"))
TICKET_TYPE_ID = int(os.environ.get("LOAD_TICKET_TYPE_ID", "1"))
EVENT_ID = int(os.environ.get("LOAD_EVENT_ID", "1"))
SALE_ID = os.environ.get("LOAD_SALE_ID", "1")
SESSION_ID = os.environ.get("LOAD_SESSION_ID", "cs_load_1")
WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")

SESSION_IDS = []


def sign(payload: str, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def completed_event(event_id: str) -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": SESSION_ID,
            "object": "checkout.session",
            "status": "complete",
            "payment_status": "paid",
            "payment_intent": "pi_load_1",
            "metadata": {"ticket_sale_id": SALE_ID},
        }},
    })


def auth_headers() -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(USER_ID)})}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"Replay target: sale {SALE_ID} / session {SESSION_ID}")
    print(f"Checkout target: ticket type {TICKET_TYPE_ID} / event {EVENT_ID}")
    print("="*60)


class ReplayStormUser(HttpUser):
    """
    TEST 1: Redelivery storm - many deliveries of one completion

    Run: locust -f locustfile.py --tags replay -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT quantity_sold FROM ticket_types WHERE id = X;
    Should have grown by the sale's quantity exactly once
    """
    wait_time = between(0, 0.1)

    @tag("replay")
    @task(3)
    def same_delivery(self):
        """Identical event id: served from the dedupe cache when Redis is up."""
        payload = completed_event("evt_load_replay")
        self.client.post(
            "/api/v1/webhooks/stripe",
            data=payload,
            headers={"stripe-signature": sign(payload), "content-type": "application/json"},
            name="/api/v1/webhooks/stripe [replay]",
        )

    @tag("replay")
    @task(1)
    def fresh_delivery(self):
        """New event id for the same session: must hit the conditional transition."""
        payload = completed_event(f"evt_load_{random.randint(1, 10**9)}")
        self.client.post(
            "/api/v1/webhooks/stripe",
            data=payload,
            headers={"stripe-signature": sign(payload), "content-type": "application/json"},
            name="/api/v1/webhooks/stripe [fresh]",
        )


class CheckoutUser(HttpUser):
    """
    TEST 2: Checkout throughput

    Run: locust -f locustfile.py --tags checkout -u 50 -r 10 --run-time 60s

    Every request inserts a pending sale; run the sweep afterwards to
    cancel the ones never paid.
    """
    wait_time = between(0.5, 2)

    def on_start(self):
        self.headers = auth_headers()

    @tag("checkout")
    @task(5)
    def quote(self):
        self.client.post("/api/v1/checkout/quote",
            json={"ticketTypeId": TICKET_TYPE_ID, "quantity": random.randint(1, 4)})

    @tag("checkout")
    @task(2)
    def create_session(self):
        with self.client.post("/api/v1/checkout/sessions",
            json={
                "ticketTypeId": TICKET_TYPE_ID,
                "quantity": random.randint(1, 4),
                "eventId": EVENT_ID,
            },
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 200:
                SESSION_IDS.append(resp.json()["sessionId"])
                resp.success()
            elif resp.status_code == 400:
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("checkout")
    @task(3)
    def poll_confirmation(self):
        """Buyer landing page polling for a sale."""
        if SESSION_IDS:
            with self.client.get(f"/api/v1/sales/by-session/{random.choice(SESSION_IDS)}",
                headers=self.headers,
                name="/api/v1/sales/by-session/{id}",
                catch_response=True
            ) as resp:
                if resp.status_code in [200, 404]:
                    resp.success()
                else:
                    resp.failure(f"Unexpected: {resp.status_code}")

    @tag("checkout")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = auth_headers()

    def expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def forged_signature(self):
        payload = completed_event("evt_load_forged")
        with self.client.post("/api/v1/webhooks/stripe",
            data=payload,
            headers={"stripe-signature": sign(payload, secret="whsec_forged")},
            name="/api/v1/webhooks/stripe [forged]",
            catch_response=True
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def unknown_ticket_type(self):
        with self.client.post("/api/v1/checkout/sessions",
            json={"ticketTypeId": 999999, "quantity": 1, "eventId": EVENT_ID},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [404])

    @tag("edge")
    @task
    def zero_quantity(self):
        with self.client.post("/api/v1/checkout/sessions",
            json={"ticketTypeId": TICKET_TYPE_ID, "quantity": 0, "eventId": EVENT_ID},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/checkout/sessions",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/checkout/sessions",
            json={"ticketTypeId": TICKET_TYPE_ID, "quantity": 1, "eventId": EVENT_ID},
            catch_response=True
        ) as resp:
            self.expect(resp, [401])
