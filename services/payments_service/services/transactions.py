"""Payment transaction data access with state-machine-checked status updates."""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.payments_service.models import (
    PaymentProcessor,
    PaymentTransaction,
    PaymentTransactionStatus,
)
from services.payments_service.state_machine import (
    assert_payment_transaction_status_transition,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def get_transaction_by_id(
    db: AsyncSession, transaction_id: uuid.UUID
) -> Optional[PaymentTransaction]:
    return await db.get(PaymentTransaction, transaction_id)


async def get_transaction_or_404(
    db: AsyncSession, transaction_id: uuid.UUID
) -> PaymentTransaction:
    transaction = await get_transaction_by_id(db, transaction_id)
    if not transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found"
        )
    return transaction


async def get_transaction_by_processor_ref(
    db: AsyncSession, processor_ref: str
) -> Optional[PaymentTransaction]:
    result = await db.execute(
        select(PaymentTransaction).where(PaymentTransaction.processor_ref == processor_ref)
    )
    return result.scalar_one_or_none()


async def create_transaction(
    db: AsyncSession,
    *,
    processor: PaymentProcessor,
    processor_ref: str,
    amount: int,
    currency: str,
    organization_id: Optional[str] = None,
    transaction_metadata: Optional[dict] = None,
    commit: bool = True,
) -> PaymentTransaction:
    transaction = PaymentTransaction(
        processor=processor,
        processor_ref=processor_ref,
        amount=amount,
        currency=currency,
        organization_id=organization_id,
        status=PaymentTransactionStatus.PENDING,
        transaction_metadata=transaction_metadata,
    )
    db.add(transaction)
    if commit:
        await db.commit()
        await db.refresh(transaction)
    else:
        await db.flush()
    return transaction


async def update_transaction_status(
    db: AsyncSession,
    transaction: PaymentTransaction,
    new_status: PaymentTransactionStatus,
    *,
    status_message: Optional[str] = None,
    processor_transaction_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    fees: Optional[int] = None,
    completed_at: Optional[datetime] = None,
    commit: bool = True,
) -> PaymentTransaction:
    """
    Move a transaction to ``new_status`` and record processor details.

    Raises HTTP 409 when the state machine rejects the transition.
    """
    previous = transaction.status
    assert_payment_transaction_status_transition(previous, new_status)

    transaction.status = new_status
    if status_message is not None:
        transaction.status_message = status_message
    if processor_transaction_id is not None:
        transaction.processor_transaction_id = processor_transaction_id
    if payment_method is not None:
        transaction.payment_method = payment_method
    if fees is not None:
        transaction.fees = fees
    if completed_at is not None:
        transaction.completed_at = completed_at
    elif new_status == PaymentTransactionStatus.SUCCESS and not transaction.completed_at:
        transaction.completed_at = utc_now()

    db.add(transaction)
    if commit:
        await db.commit()
        await db.refresh(transaction)

    if previous != new_status:
        logger.info(
            f"Transaction {transaction.processor_ref} moved {previous.value} -> {new_status.value}",
            extra={
                "extra_fields": {
                    "transaction_id": str(transaction.id),
                    "from_status": previous.value,
                    "to_status": new_status.value,
                }
            },
        )
    return transaction


async def list_withdrawals_for_organization(
    db: AsyncSession, organization_id: str
) -> list[PaymentTransaction]:
    result = await db.execute(
        select(PaymentTransaction)
        .where(
            PaymentTransaction.organization_id == organization_id,
            PaymentTransaction.processor == PaymentProcessor.PAYSTACK_TRANSFER,
        )
        .order_by(PaymentTransaction.created_at.desc())
    )
    return list(result.scalars().all())


async def total_withdrawals_by_status(
    db: AsyncSession,
    organization_id: str,
    withdrawal_status: PaymentTransactionStatus,
) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(PaymentTransaction.amount), 0)).where(
            PaymentTransaction.organization_id == organization_id,
            PaymentTransaction.processor == PaymentProcessor.PAYSTACK_TRANSFER,
            PaymentTransaction.status == withdrawal_status,
        )
    )
    return int(result.scalar_one())
