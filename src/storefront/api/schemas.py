"""Pydantic request/response schemas for the Storefront API.

These are external contracts, kept separate from the Protean aggregates and
commands they are translated into.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartLineSchema(BaseModel):
    variant_id: str
    quantity: int = Field(gt=0)


class AddressSchema(BaseModel):
    name: str
    line1: str
    line2: str | None = None
    city: str
    province: str
    postal_code: str
    country: str = "CA"


class TotalsSchema(BaseModel):
    subtotal: int
    shipping: int
    tax: int
    total: int
    currency: str
    shipping_method: str


class PaymentHandleSchema(BaseModel):
    rail: str
    reference: str
    client_secret: str | None = None
    payment_url: str | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    customer_id: str
    customer_email: str | None = None
    items: list[CartLineSchema]
    shipping_address: AddressSchema
    shipping_method: str | None = None
    payment_rail: str = "card"

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "customer_email": "shopper@example.com",
                    "items": [{"variant_id": "var-001", "quantity": 2}],
                    "shipping_address": {
                        "name": "Ada Shopper",
                        "line1": "10 Water St",
                        "city": "St. John's",
                        "province": "NL",
                        "postal_code": "A1C 1A1",
                        "country": "CA",
                    },
                    "shipping_method": "standard",
                    "payment_rail": "card",
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    order_id: str
    payment: PaymentHandleSchema
    totals: TotalsSchema


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------
class CallbackAckResponse(BaseModel):
    received: bool = True
    result: str


# ---------------------------------------------------------------------------
# Staff operations
# ---------------------------------------------------------------------------
class BulkOrdersRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)


class ShipOrdersRequest(BulkOrdersRequest):
    tracking_number: str | None = None
    carrier: str | None = None


class CancelOrdersRequest(BulkOrdersRequest):
    reason: str | None = None


class OrderResultSchema(BaseModel):
    order_id: str
    success: bool
    error: str | None = None


class BulkSummarySchema(BaseModel):
    processed: int
    succeeded: int
    failed: int


class BulkOrdersResponse(BaseModel):
    results: list[OrderResultSchema]
    summary: BulkSummarySchema


class CreateReturnRequest(BaseModel):
    item_ids: list[str] = Field(min_length=1)
    inventory_action: str  # restock, writeoff
    reason: str
    return_type: str = "return"  # return, exchange


class ReturnResponse(BaseModel):
    return_id: str
    order_id: str
    order_status: str
    inventory_action: str
    item_ids: list[str]


class OrderItemSchema(BaseModel):
    item_id: str
    variant_id: str
    quantity: int
    unit_price: int
    item_status: str


class OrderResponse(BaseModel):
    order_id: str
    status: str
    customer_id: str
    subtotal: int
    shipping: int
    tax: int
    total: int
    currency: str
    shipping_method: str | None = None
    payment_rail: str | None = None
    payment_reference: str | None = None
    rail_status: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    items: list[OrderItemSchema]


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------
class RegisterVariantRequest(BaseModel):
    sku: str
    title: str | None = None
    price: int = Field(ge=0)
    stock: int = Field(default=0, ge=0)


class VariantIdResponse(BaseModel):
    variant_id: str


class StockLevelResponse(BaseModel):
    variant_id: str
    stock: int
    reserved: int
    available: int


class AdjustStockRequest(BaseModel):
    delta: int
    reason: str
    actor: str = "staff"


class AuditEntrySchema(BaseModel):
    operation: str
    stock_delta: int
    reserved_delta: int
    reason: str | None = None
    actor: str | None = None
    reference: str | None = None
    recorded_at: str


class StockHistoryResponse(BaseModel):
    variant_id: str
    entries: list[AuditEntrySchema]
