"""Refund records and the admin refund flow."""

import uuid
from typing import Optional

from fastapi import HTTPException, status
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.payments_service.models import (
    PaymentTransaction,
    PaymentTransactionStatus,
    Refund,
    RefundStatus,
)
from services.payments_service.paystack_client import PaystackClient
from services.payments_service.services.donations import get_donation_for_transaction
from services.payments_service.services.transactions import update_transaction_status
from services.payments_service.state_machine import (
    assert_payment_transaction_status_transition,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def list_refunds_for_transaction(
    db: AsyncSession, transaction_id: uuid.UUID
) -> list[Refund]:
    result = await db.execute(
        select(Refund)
        .where(Refund.transaction_id == transaction_id)
        .order_by(Refund.created_at.desc())
    )
    return list(result.scalars().all())


async def settle_pending_refunds(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    outcome: RefundStatus,
    processor_refund_id: Optional[str] = None,
) -> int:
    """Close every PENDING refund of a transaction. Returns how many changed."""
    result = await db.execute(
        select(Refund).where(
            Refund.transaction_id == transaction_id,
            Refund.status == RefundStatus.PENDING,
        )
    )
    refunds = list(result.scalars().all())
    for refund in refunds:
        refund.status = outcome
        refund.processed_at = utc_now()
        if processor_refund_id and not refund.processor_refund_id:
            refund.processor_refund_id = processor_refund_id
        db.add(refund)
    return len(refunds)


async def request_refund(
    db: AsyncSession,
    paystack: PaystackClient,
    transaction: PaymentTransaction,
    *,
    reason: str,
    amount: Optional[int] = None,
    initiated_by: Optional[str] = None,
) -> Refund:
    """
    Ask Paystack to refund a successful charge and park the transaction in
    REFUND_PENDING until the refund webhook arrives.
    """
    assert_payment_transaction_status_transition(
        transaction.status, PaymentTransactionStatus.REFUND_PENDING
    )
    if transaction.status != PaymentTransactionStatus.SUCCESS:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only successful transactions can be refunded",
        )

    refund_amount = transaction.amount if amount is None else amount
    if refund_amount <= 0 or refund_amount > transaction.amount:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Refund amount must be positive and at most the transaction amount",
        )

    result = await paystack.create_refund(
        transaction.processor_ref, amount=refund_amount, merchant_note=reason
    )

    donation = await get_donation_for_transaction(db, transaction.id)

    refund = Refund(
        donation_id=donation.id if donation else None,
        transaction_id=transaction.id,
        amount=refund_amount,
        reason=reason,
        processor=transaction.processor.value,
        processor_refund_id=result.refund_id or None,
        status=RefundStatus.PENDING,
        initiated_by=initiated_by,
    )
    db.add(refund)
    await update_transaction_status(
        db,
        transaction,
        PaymentTransactionStatus.REFUND_PENDING,
        status_message=f"Refund requested: {reason}",
        commit=False,
    )
    await db.commit()
    await db.refresh(refund)

    logger.info(
        f"Refund requested for transaction {transaction.processor_ref}",
        extra={
            "extra_fields": {
                "transaction_id": str(transaction.id),
                "refund_id": str(refund.id),
                "amount": refund_amount,
            }
        },
    )
    return refund
