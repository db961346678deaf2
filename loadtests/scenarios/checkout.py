"""Checkout contention scenarios.

HotVariantUser hammers a single low-stock variant so concurrent checkouts
race for the same units: 201s and 409s are both expected, anything else is
a failure. OrderLifecycleUser drives one order from checkout through card
settlement to delivery.
"""

import json
import uuid

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import card_event, checkout_data, variant_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import OrderState, StoreState

# All HotVariantUsers share one tenant so they contend for the same stock
HOT_TENANT = f"tenant-hot-{uuid.uuid4().hex[:6]}"
TEST_SIGNATURE = "test-signature"


def _headers(tenant_id):
    return {"X-Tenant-ID": tenant_id}


class HotVariantUser(HttpUser):
    wait_time = between(0.1, 0.5)
    hot_variant_id: str | None = None

    def on_start(self):
        if HotVariantUser.hot_variant_id is None:
            resp = self.client.post("/variants", json=variant_data(stock=25), headers=_headers(HOT_TENANT))
            if resp.status_code == 201:
                HotVariantUser.hot_variant_id = resp.json()["variant_id"]

    @task(5)
    def checkout(self):
        if not self.hot_variant_id:
            return
        with self.client.post(
            "/checkout",
            json=checkout_data([self.hot_variant_id]),
            headers=_headers(HOT_TENANT),
            catch_response=True,
            name="POST /checkout (hot)",
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Checkout failed: {resp.status_code} {extract_error_detail(resp)}")

    @task(1)
    def stock_level(self):
        if not self.hot_variant_id:
            return
        with self.client.get(
            f"/variants/{self.hot_variant_id}/stock",
            headers=_headers(HOT_TENANT),
            catch_response=True,
            name="GET /variants/{id}/stock",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Stock level failed: {resp.status_code}")
                return
            level = resp.json()
            if level["available"] < 0 or level["reserved"] > level["stock"]:
                resp.failure(f"Ledger invariant broken: {level}")


class OrderLifecycleJourney(SequentialTaskSet):
    """Register variant -> Checkout -> Card webhook -> Fulfill -> Ship -> Deliver."""

    def on_start(self):
        self.store = StoreState(tenant_id=f"tenant-lt-{uuid.uuid4().hex[:8]}")
        self.order = OrderState()

    @task
    def register_variant(self):
        with self.client.post(
            "/variants",
            json=variant_data(stock=100),
            headers=_headers(self.store.tenant_id),
            catch_response=True,
            name="POST /variants",
        ) as resp:
            if resp.status_code == 201:
                self.store.variant_ids.append(resp.json()["variant_id"])
            else:
                resp.failure(f"Register variant failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def checkout(self):
        with self.client.post(
            "/checkout",
            json=checkout_data(self.store.variant_ids),
            headers=_headers(self.store.tenant_id),
            catch_response=True,
            name="POST /checkout",
        ) as resp:
            if resp.status_code == 201:
                body = resp.json()
                self.order.order_id = body["order_id"]
                self.order.reference = body["payment"]["reference"]
            else:
                resp.failure(f"Checkout failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def settle(self):
        payload = card_event("payment_intent.succeeded", self.order.reference, self.order.order_id)
        with self.client.post(
            f"/payments/card/webhook?tenant_id={self.store.tenant_id}",
            data=json.dumps(payload),
            headers={"Stripe-Signature": TEST_SIGNATURE, "Content-Type": "application/json"},
            catch_response=True,
            name="POST /payments/card/webhook",
        ) as resp:
            if resp.status_code == 200 and resp.json()["result"] == "paid":
                self.order.status = "Paid"
            else:
                resp.failure(f"Settlement failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    def _staff_step(self, step, name, **extra):
        with self.client.post(
            f"/orders/{step}",
            json={"order_ids": [self.order.order_id], **extra},
            headers=_headers(self.store.tenant_id),
            catch_response=True,
            name=name,
        ) as resp:
            if resp.status_code != 200 or resp.json()["summary"]["failed"]:
                resp.failure(f"{step} failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def fulfill(self):
        self._staff_step("fulfill", "POST /orders/fulfill")

    @task
    def ship(self):
        self._staff_step("ship", "POST /orders/ship", tracking_number=f"TRK{uuid.uuid4().hex[:10]}", carrier="Canada Post")

    @task
    def deliver(self):
        self._staff_step("deliver", "POST /orders/deliver")

    @task
    def done(self):
        self.interrupt()


class OrderLifecycleUser(HttpUser):
    tasks = [OrderLifecycleJourney]
    wait_time = between(1, 3)
