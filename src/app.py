"""storeflow FastAPI application.

Web server that processes commands synchronously via HTTP. Every request is
wrapped in the storeflow domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storeflow.domain import storeflow
from storeflow.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV selects the config overlay from [tool.protean] in pyproject.toml.
configure_logging()
storeflow.init()


def create_app() -> FastAPI:
    from storeflow.api import (
        inventory_router,
        maintenance_router,
        order_router,
        register_error_handlers,
        request_log_context,
        reservation_router,
    )

    app = FastAPI(
        title="storeflow API",
        description="Multi-tenant inventory ledger, reservations and order fulfillment",
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
        """Push the storeflow domain context for each request."""
        with storeflow.domain_context():
            response = await call_next(request)
        return response

    # Added last so it wraps the domain context and binds log context first
    app.middleware("http")(request_log_context)

    app.include_router(order_router)
    app.include_router(inventory_router)
    app.include_router(reservation_router)
    app.include_router(maintenance_router)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": {"name": storeflow.name}})

    return app


app = create_app()
