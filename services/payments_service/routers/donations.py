"""Public donation checkout and status endpoints."""

from fastapi import APIRouter, Depends, status
from libs.db.session import get_async_db
from services.payments_service.paystack_client import (
    PaystackClient,
    get_paystack_client,
)
from services.payments_service.schemas import (
    DonationCheckoutResponse,
    DonationCreate,
    DonationStatusResponse,
)
from services.payments_service.services.donations import (
    get_donation_by_reference_or_404,
    start_donation_checkout,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/payments", tags=["donations"])


@router.post(
    "/donations",
    response_model=DonationCheckoutResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_donation(
    payload: DonationCreate,
    db: AsyncSession = Depends(get_async_db),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    """Create a pending donation and return the Paystack checkout URL."""
    donation, checkout = await start_donation_checkout(db, paystack, payload)
    return DonationCheckoutResponse(
        donation_id=donation.id,
        reference=donation.reference,
        authorization_url=checkout.authorization_url,
        access_code=checkout.access_code,
    )


@router.get("/donations/{reference}/status", response_model=DonationStatusResponse)
async def get_donation_status(
    reference: str,
    db: AsyncSession = Depends(get_async_db),
):
    return await get_donation_by_reference_or_404(db, reference)
