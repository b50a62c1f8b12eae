"""FastAPI application for the Payments Service."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from services.payments_service.paystack_client import PaystackError
from services.payments_service.routers import (
    banks_router,
    donations_router,
    transactions_router,
    webhooks_router,
    withdrawals_router,
)

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the Payments Service FastAPI app."""
    app = FastAPI(
        title="Fundraiser Payments Service",
        version="0.1.0",
        description="Donations, withdrawals and Paystack webhook processing.",
    )
    add_observability_middleware(app)

    @app.exception_handler(PaystackError)
    async def paystack_error_handler(request: Request, exc: PaystackError) -> JSONResponse:
        """Upstream Paystack failures surface as 502."""
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": f"Payment provider error: {exc.message}"},
        )

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "payments"}

    app.include_router(webhooks_router)
    app.include_router(donations_router)
    app.include_router(transactions_router)
    app.include_router(withdrawals_router)
    app.include_router(banks_router)

    return app


app = create_app()
