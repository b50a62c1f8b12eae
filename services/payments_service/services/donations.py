"""Donation data access and the public checkout flow."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.payments_service.models import (
    Donation,
    DonationStatus,
    PaymentProcessor,
    PaymentTransactionStatus,
)
from services.payments_service.paystack_client import (
    CheckoutSession,
    PaystackClient,
    PaystackError,
)
from services.payments_service.schemas import DonationCreate
from services.payments_service.services.transactions import (
    create_transaction,
    update_transaction_status,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def get_donation_by_reference(
    db: AsyncSession, reference: str
) -> Optional[Donation]:
    result = await db.execute(select(Donation).where(Donation.reference == reference))
    return result.scalar_one_or_none()


async def get_donation_for_transaction(
    db: AsyncSession, transaction_id: uuid.UUID
) -> Optional[Donation]:
    result = await db.execute(
        select(Donation).where(Donation.payment_transaction_id == transaction_id)
    )
    return result.scalar_one_or_none()


async def get_donation_by_reference_or_404(db: AsyncSession, reference: str) -> Donation:
    donation = await get_donation_by_reference(db, reference)
    if not donation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Donation not found"
        )
    return donation


def mark_donation_succeeded(
    donation: Donation, completed_at: Optional[datetime] = None
) -> None:
    donation.status = DonationStatus.SUCCESS
    donation.completed_at = completed_at or utc_now()
    donation.failure_reason = None


def mark_donation_failed(donation: Donation, reason: str) -> None:
    donation.status = DonationStatus.FAILED
    donation.failed_at = utc_now()
    donation.failure_reason = reason


async def total_raised_by_organization(db: AsyncSession, organization_id: str) -> int:
    """Sum of successful donations, in minor units."""
    result = await db.execute(
        select(func.coalesce(func.sum(Donation.amount), 0)).where(
            Donation.organization_id == organization_id,
            Donation.status == DonationStatus.SUCCESS,
        )
    )
    return int(result.scalar_one())


def _callback_url(reference: str) -> str:
    base = get_settings().FRONTEND_URL.rstrip("/")
    return f"{base}/donations/{reference}/status"


async def start_donation_checkout(
    db: AsyncSession, paystack: PaystackClient, payload: DonationCreate
) -> tuple[Donation, CheckoutSession]:
    """
    Create a pending donation with its pending transaction and open a Paystack
    checkout for it. The charge outcome arrives through the webhook.
    """
    reference = Donation.generate_reference()
    transaction = await create_transaction(
        db,
        processor=PaymentProcessor.PAYSTACK,
        processor_ref=reference,
        amount=payload.amount,
        currency=payload.currency,
        organization_id=payload.organization_id,
        transaction_metadata={"type": "donation", "campaign_id": payload.campaign_id},
        commit=False,
    )
    donation = Donation(
        campaign_id=payload.campaign_id,
        organization_id=payload.organization_id,
        amount=payload.amount,
        currency=payload.currency,
        reference=reference,
        payment_transaction_id=transaction.id,
        is_anonymous=payload.is_anonymous,
        donor_id=payload.donor_id,
        donor_name=payload.donor_name,
        donor_email=payload.donor_email,
        donor_message=payload.donor_message,
        show_message=payload.show_message,
        status=DonationStatus.PENDING,
    )
    db.add(donation)
    await db.commit()

    try:
        checkout = await paystack.initialize_transaction(
            email=payload.donor_email,
            amount=payload.amount,
            reference=reference,
            currency=payload.currency,
            callback_url=_callback_url(reference),
            metadata={
                "donationId": str(donation.id),
                "campaignId": payload.campaign_id,
            },
        )
    except PaystackError as e:
        mark_donation_failed(donation, e.message)
        db.add(donation)
        await update_transaction_status(
            db, transaction, PaymentTransactionStatus.FAILED, status_message=e.message
        )
        logger.error(
            "donation.checkout_failed",
            extra={"extra_fields": {"reference": reference, "error": e.message}},
        )
        raise

    logger.info(
        "donation.checkout_started",
        extra={
            "extra_fields": {
                "reference": reference,
                "campaign_id": payload.campaign_id,
                "amount": payload.amount,
            }
        },
    )
    return donation, checkout
