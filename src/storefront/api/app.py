"""FastAPI application factory for the storefront."""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api.errors import register_storefront_handlers
from storefront.api.routes import checkout_router, order_router, payment_router, variant_router
from storefront.domain import storefront
from storefront.utils.logging import tenant_context


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront API",
        description="Inventory reservation, checkout and order fulfillment",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the storefront domain context and bind the tenant to log lines."""
        tenant_id = request.headers.get("x-tenant-id") or request.query_params.get("tenant_id")
        with tenant_context(tenant_id, path=request.url.path), storefront.domain_context():
            return await call_next(request)

    app.include_router(checkout_router)
    app.include_router(payment_router)
    app.include_router(order_router)
    app.include_router(variant_router)
    register_storefront_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": {"name": storefront.name}})

    return app
