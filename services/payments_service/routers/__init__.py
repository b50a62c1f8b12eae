"""Routers package."""

from services.payments_service.routers.banks import router as banks_router
from services.payments_service.routers.donations import router as donations_router
from services.payments_service.routers.transactions import (
    router as transactions_router,
)
from services.payments_service.routers.webhooks import router as webhooks_router
from services.payments_service.routers.withdrawals import router as withdrawals_router

__all__ = [
    "banks_router",
    "donations_router",
    "transactions_router",
    "webhooks_router",
    "withdrawals_router",
]
