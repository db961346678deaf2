"""FastAPI routes for the Storefront: checkout, payment callbacks, staff operations, stock.

Endpoints are plain functions. Provider SDK calls and the keyed locks block,
so FastAPI runs them in its threadpool instead of on the event loop.
"""

import os

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AdjustStockRequest,
    AuditEntrySchema,
    BulkOrdersRequest,
    BulkOrdersResponse,
    CallbackAckResponse,
    CancelOrdersRequest,
    CheckoutRequest,
    CheckoutResponse,
    CreateReturnRequest,
    OrderItemSchema,
    OrderResponse,
    PaymentHandleSchema,
    RegisterVariantRequest,
    ReturnResponse,
    ShipOrdersRequest,
    StockHistoryResponse,
    StockLevelResponse,
    TotalsSchema,
    VariantIdResponse,
)
from storefront.checkout.saga import CheckoutSaga
from storefront.exceptions import InvalidCallbackSignature
from storefront.fulfillment.desk import FulfillmentDesk, summarize
from storefront.order.order import Order
from storefront.payment.rails import CARD, CRYPTO, get_rail
from storefront.returns.desk import ReturnDesk
from storefront.settlement.handler import SettlementHandler
from storefront.stock.ledger import StockLedger
from storefront.stock.registration import RegisterVariant
from storefront.utils.tenancy import get_for_tenant


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def tenant_scope(
    x_tenant_id: str | None = Header(default=None),
    tenant_id: str | None = Query(default=None),
) -> str:
    """Resolve the tenant from the X-Tenant-ID header, or ?tenant_id= for provider callbacks."""
    tenant = x_tenant_id or tenant_id
    if not tenant:
        raise HTTPException(status_code=400, detail="Tenant is required")
    return tenant


async def raw_body(request: Request) -> bytes:
    return await request.body()


def _bulk_response(results) -> BulkOrdersResponse:
    return BulkOrdersResponse(results=results, summary=summarize(results))


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
def checkout(body: CheckoutRequest, tenant_id: str = Depends(tenant_scope)) -> CheckoutResponse:
    """Reserve stock, create a pending order and open the external payment."""
    result = CheckoutSaga().place_order(
        tenant_id=tenant_id,
        customer_id=body.customer_id,
        customer_email=body.customer_email,
        lines=[line.model_dump() for line in body.items],
        shipping_address=body.shipping_address.model_dump(),
        shipping_method=body.shipping_method,
        rail=body.payment_rail,
    )
    return CheckoutResponse(
        order_id=result.order_id,
        payment=PaymentHandleSchema(
            rail=result.payment.rail,
            reference=result.payment.reference,
            client_secret=result.payment.client_secret,
            payment_url=result.payment.payment_url,
        ),
        totals=TotalsSchema(
            subtotal=result.quote.subtotal,
            shipping=result.quote.shipping,
            tax=result.quote.tax,
            total=result.quote.total,
            currency=result.quote.currency,
            shipping_method=result.quote.selected_method,
        ),
    )


# ---------------------------------------------------------------------------
# Payment Callback Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


def _settle(rail_name: str, tenant_id: str, payload: bytes, signature: str) -> CallbackAckResponse:
    try:
        callback = get_rail(rail_name).verify_callback(payload, signature)
    except InvalidCallbackSignature as exc:
        raise HTTPException(status_code=401, detail=exc.reason) from exc

    result = SettlementHandler().settle(tenant_id, rail_name, callback)
    return CallbackAckResponse(result=result.value)


@payment_router.post("/card/webhook", response_model=CallbackAckResponse)
def card_webhook(
    payload: bytes = Depends(raw_body),
    stripe_signature: str = Header(default=""),
    tenant_id: str = Depends(tenant_scope),
) -> CallbackAckResponse:
    """Settle a card payment from a signed payment_intent event."""
    return _settle(CARD, tenant_id, payload, stripe_signature)


@payment_router.post("/crypto/webhook", response_model=CallbackAckResponse)
def crypto_webhook(
    payload: bytes = Depends(raw_body),
    x_nowpayments_sig: str = Header(default=""),
    tenant_id: str = Depends(tenant_scope),
) -> CallbackAckResponse:
    """Settle (or record the progress of) a crypto invoice from a signed IPN."""
    return _settle(CRYPTO, tenant_id, payload, x_nowpayments_sig)


@payment_router.post("/{rail_name}/configure")
def configure_fake_rail(rail_name: str, should_succeed: bool = True) -> dict:
    """Toggle a fake rail's behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Rail configuration not available in production")
    if rail_name not in (CARD, CRYPTO):
        raise HTTPException(status_code=404, detail="Unknown payment rail")

    rail = get_rail(rail_name)
    if not hasattr(rail, "configure"):
        raise HTTPException(status_code=400, detail="Rail configuration only available for fake rails")
    rail.configure(should_succeed=should_succeed)
    return {"rail": rail_name, "should_succeed": should_succeed}


# ---------------------------------------------------------------------------
# Order Router (staff operations)
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/fulfill", response_model=BulkOrdersResponse)
def fulfill_orders(body: BulkOrdersRequest, tenant_id: str = Depends(tenant_scope)) -> BulkOrdersResponse:
    """Mark paid orders as fulfilled."""
    return _bulk_response(FulfillmentDesk().fulfill(tenant_id, body.order_ids))


@order_router.post("/ship", response_model=BulkOrdersResponse)
def ship_orders(body: ShipOrdersRequest, tenant_id: str = Depends(tenant_scope)) -> BulkOrdersResponse:
    """Ship fulfilled orders, optionally recording carrier tracking."""
    results = FulfillmentDesk().ship(
        tenant_id,
        body.order_ids,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
    )
    return _bulk_response(results)


@order_router.post("/deliver", response_model=BulkOrdersResponse)
def deliver_orders(body: BulkOrdersRequest, tenant_id: str = Depends(tenant_scope)) -> BulkOrdersResponse:
    """Confirm delivery of shipped orders."""
    return _bulk_response(FulfillmentDesk().deliver(tenant_id, body.order_ids))


@order_router.post("/cancel", response_model=BulkOrdersResponse)
def cancel_orders(body: CancelOrdersRequest, tenant_id: str = Depends(tenant_scope)) -> BulkOrdersResponse:
    """Cancel pending or paid orders."""
    return _bulk_response(FulfillmentDesk().cancel(tenant_id, body.order_ids, reason=body.reason))


@order_router.post("/{order_id}/returns", status_code=201, response_model=ReturnResponse)
def create_return(
    order_id: str,
    body: CreateReturnRequest,
    tenant_id: str = Depends(tenant_scope),
) -> ReturnResponse:
    """Return or exchange items of a paid (or later) order."""
    outcome = ReturnDesk().create_return(
        tenant_id,
        order_id,
        body.item_ids,
        inventory_action=body.inventory_action,
        reason=body.reason,
        return_type=body.return_type,
    )
    return ReturnResponse(
        return_id=outcome.return_id,
        order_id=outcome.order_id,
        order_status=outcome.order_status,
        inventory_action=outcome.inventory_action,
        item_ids=list(outcome.item_ids),
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, tenant_id: str = Depends(tenant_scope)) -> OrderResponse:
    order = get_for_tenant(Order, tenant_id, order_id)
    return OrderResponse(
        order_id=str(order.id),
        status=order.status,
        customer_id=str(order.customer_id),
        subtotal=order.subtotal,
        shipping=order.shipping,
        tax=order.tax,
        total=order.total,
        currency=order.currency,
        shipping_method=order.shipping_method,
        payment_rail=order.payment_rail,
        payment_reference=order.payment_reference,
        rail_status=order.rail_status,
        tracking_number=order.tracking_number,
        carrier=order.carrier,
        items=[
            OrderItemSchema(
                item_id=str(item.id),
                variant_id=str(item.variant_id),
                quantity=item.quantity,
                unit_price=item.unit_price,
                item_status=item.item_status,
            )
            for item in order.items
        ],
    )


# ---------------------------------------------------------------------------
# Variant Router (stock)
# ---------------------------------------------------------------------------
variant_router = APIRouter(prefix="/variants", tags=["stock"])


@variant_router.post("", status_code=201, response_model=VariantIdResponse)
def register_variant(
    body: RegisterVariantRequest,
    tenant_id: str = Depends(tenant_scope),
) -> VariantIdResponse:
    command = RegisterVariant(
        tenant_id=tenant_id,
        sku=body.sku,
        title=body.title,
        price=body.price,
        stock=body.stock,
    )
    variant_id = current_domain.process(command, asynchronous=False)
    return VariantIdResponse(variant_id=variant_id)


@variant_router.get("/{variant_id}/stock", response_model=StockLevelResponse)
def stock_level(variant_id: str, tenant_id: str = Depends(tenant_scope)) -> StockLevelResponse:
    return StockLevelResponse(**StockLedger().stock_level(tenant_id, variant_id))


@variant_router.post("/{variant_id}/adjust", response_model=StockLevelResponse)
def adjust_stock(
    variant_id: str,
    body: AdjustStockRequest,
    tenant_id: str = Depends(tenant_scope),
) -> StockLevelResponse:
    """Audited manual stock correction; refused if it would drop stock below reserved."""
    ledger = StockLedger()
    ledger.adjust(tenant_id, variant_id, body.delta, reason=body.reason, actor=body.actor)
    return StockLevelResponse(**ledger.stock_level(tenant_id, variant_id))


@variant_router.get("/{variant_id}/history", response_model=StockHistoryResponse)
def stock_history(
    variant_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    tenant_id: str = Depends(tenant_scope),
) -> StockHistoryResponse:
    entries = StockLedger().history(tenant_id, variant_id, limit=limit)
    return StockHistoryResponse(
        variant_id=variant_id,
        entries=[
            AuditEntrySchema(
                operation=entry.operation,
                stock_delta=entry.stock_delta,
                reserved_delta=entry.reserved_delta,
                reason=entry.reason,
                actor=entry.actor,
                reference=entry.reference,
                recorded_at=entry.recorded_at.isoformat(),
            )
            for entry in entries
        ],
    )
