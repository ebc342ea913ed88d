"""
Tests for transaction queries and admin overrides.

These tests verify:
  - A transaction is visible to its buyer, its seller and admins only
  - Unknown ids return 404
  - GET /transactions lists the caller's purchases, newest first, paginated
  - Admins can override a status along a legal edge; illegal edges are 409
  - Requesting the current status is a no-op, and a listing-catalog outage
    does not fail an override that already committed
  - Non-admins cannot override or read the webhook audit trail
"""

import uuid
from decimal import Decimal

import pytest_asyncio

from conftest import stripe_event


@pytest_asyncio.fixture
async def payment(buyer, pay):
    response = await pay(buyer, amount="99.99")
    assert response.status_code == 201
    return response.json()


class TestGetTransaction:

    async def test_buyer_can_view(self, buyer, payment):
        response = await buyer.client.get(f"/transactions/{payment['transaction_id']}")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == payment["transaction_id"]
        assert Decimal(data["amount"]) == Decimal("99.99")
        assert data["status"] == "pending"

    async def test_seller_can_view(self, seller, payment):
        response = await seller.client.get(f"/transactions/{payment['transaction_id']}")
        assert response.status_code == 200

    async def test_admin_can_view(self, admin, payment):
        response = await admin.client.get(f"/transactions/{payment['transaction_id']}")
        assert response.status_code == 200

    async def test_unrelated_user_forbidden(self, other_buyer, payment):
        response = await other_buyer.client.get(f"/transactions/{payment['transaction_id']}")
        assert response.status_code == 403
        assert response.json()["error_type"] == "unauthorized_access"

    async def test_unknown_id_not_found(self, buyer):
        response = await buyer.client.get(f"/transactions/{uuid.uuid4()}")
        assert response.status_code == 404

    async def test_requires_authentication(self, client, payment):
        response = await client.get(f"/transactions/{payment['transaction_id']}")
        assert response.status_code == 401


class TestListTransactions:

    async def test_newest_first(self, buyer, pay):
        ids = []
        for listing_id in (1, 2, 3):
            response = await pay(buyer, listing_id=listing_id)
            ids.append(response.json()["transaction_id"])

        response = await buyer.client.get("/transactions")
        assert response.status_code == 200
        assert [t["id"] for t in response.json()] == list(reversed(ids))

    async def test_only_own_purchases(self, buyer, other_buyer, pay):
        await pay(buyer)
        await pay(other_buyer, listing_id=2)

        response = await other_buyer.client.get("/transactions")
        data = response.json()
        assert len(data) == 1
        assert data[0]["buyer_id"] == str(other_buyer.user_id)

    async def test_pagination(self, buyer, pay):
        for listing_id in range(1, 6):
            await pay(buyer, listing_id=listing_id)

        page = await buyer.client.get("/transactions", params={"limit": 2, "offset": 2})
        assert [t["listing_id"] for t in page.json()] == [3, 2]

    async def test_limit_bounds(self, buyer):
        assert (await buyer.client.get("/transactions", params={"limit": 0})).status_code == 422
        assert (await buyer.client.get("/transactions", params={"limit": 201})).status_code == 422

    async def test_empty_for_new_user(self, other_buyer):
        response = await other_buyer.client.get("/transactions")
        assert response.json() == []


class TestStatusOverride:

    async def test_admin_fails_stuck_payment(self, admin, buyer, payment):
        response = await admin.client.put(
            f"/transactions/{payment['transaction_id']}/status",
            json={"status": "failed"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "failed"

        fetched = await buyer.client.get(f"/transactions/{payment['transaction_id']}")
        assert fetched.json()["status"] == "failed"

    async def test_admin_completion_notifies_listing(self, admin, payment, notifier):
        response = await admin.client.put(
            f"/transactions/{payment['transaction_id']}/status",
            json={"status": "completed"},
        )
        assert response.status_code == 200
        assert [str(i) for i in notifier.completed] == [payment["transaction_id"]]

    async def test_completion_survives_notifier_outage(self, admin, buyer, payment, notifier):
        notifier.fail = True

        response = await admin.client.put(
            f"/transactions/{payment['transaction_id']}/status",
            json={"status": "completed"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert [str(i) for i in notifier.completed] == [payment["transaction_id"]]

        fetched = await buyer.client.get(f"/transactions/{payment['transaction_id']}")
        assert fetched.json()["status"] == "completed"

    async def test_pending_to_pending_is_noop(self, admin, payment, notifier):
        response = await admin.client.put(
            f"/transactions/{payment['transaction_id']}/status",
            json={"status": "pending"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert notifier.completed == []

    async def test_illegal_edge_conflict(self, admin, payment):
        response = await admin.client.put(
            f"/transactions/{payment['transaction_id']}/status",
            json={"status": "refunded"},
        )
        assert response.status_code == 409
        body = response.json()
        assert body["error_type"] == "illegal_transition"
        assert body["current_status"] == "pending"
        assert body["requested_status"] == "refunded"

    async def test_back_to_pending_conflict(self, admin, payment):
        await admin.client.put(
            f"/transactions/{payment['transaction_id']}/status",
            json={"status": "failed"},
        )
        response = await admin.client.put(
            f"/transactions/{payment['transaction_id']}/status",
            json={"status": "pending"},
        )
        assert response.status_code == 409

    async def test_buyer_cannot_override(self, buyer, payment):
        response = await buyer.client.put(
            f"/transactions/{payment['transaction_id']}/status",
            json={"status": "completed"},
        )
        assert response.status_code == 403

    async def test_unknown_transaction(self, admin):
        response = await admin.client.put(
            f"/transactions/{uuid.uuid4()}/status",
            json={"status": "failed"},
        )
        assert response.status_code == 404


class TestEventTrail:

    async def test_admin_sees_deliveries_in_order(
        self, admin, payment, send_stripe_webhook
    ):
        reference = payment["provider_reference"]
        await send_stripe_webhook(stripe_event("payment_intent.succeeded", id=reference))
        await send_stripe_webhook(stripe_event("payment_intent.succeeded", id=reference))

        response = await admin.client.get(f"/transactions/{payment['transaction_id']}/events")
        assert response.status_code == 200
        events = response.json()
        assert [e["disposition"] for e in events] == ["applied", "duplicate"]
        assert events[0]["event_type"] == "payment_intent.succeeded"
        assert events[0]["outcome"] == "succeeded"

    async def test_non_admin_forbidden(self, buyer, payment):
        response = await buyer.client.get(f"/transactions/{payment['transaction_id']}/events")
        assert response.status_code == 403
