"""Faker-based data generators for Locust load test scenarios.

Payloads match the field names of the API's Pydantic request schemas and
pass checkout's address and cart validation.
"""

import random
import uuid

from faker import Faker

fake = Faker("en_CA")

PROVINCES = ["ON", "QC", "BC", "AB", "MB", "SK", "NS", "NB", "NL", "PE"]


def tenant_id() -> str:
    return f"tenant-lt-{uuid.uuid4().hex[:8]}"


def variant_data(stock: int = 50) -> dict:
    return {
        "sku": f"LT-{uuid.uuid4().hex[:8].upper()}",
        "title": fake.catch_phrase()[:80],
        "price": random.choice([1299, 2500, 4999, 8900]),
        "stock": stock,
    }


def address_data() -> dict:
    return {
        "name": fake.name()[:100],
        "line1": fake.street_address()[:255],
        "city": fake.city()[:100],
        "province": random.choice(PROVINCES),
        "postal_code": fake.postalcode(),
        "country": "CA",
    }


def checkout_data(variant_ids: list[str], rail: str = "card") -> dict:
    return {
        "customer_id": f"cust-lt-{uuid.uuid4().hex[:8]}",
        "customer_email": fake.email(),
        "items": [{"variant_id": variant_id, "quantity": random.randint(1, 2)} for variant_id in variant_ids],
        "shipping_address": address_data(),
        "shipping_method": random.choice(["standard", "express"]),
        "payment_rail": rail,
    }


def card_event(status: str, reference: str, order_id: str) -> dict:
    """Card webhook body as the fake card rail expects it."""
    return {
        "id": f"evt_{uuid.uuid4().hex[:12]}",
        "type": status,
        "data": {"object": {"id": reference, "metadata": {"order_id": order_id}}},
    }
