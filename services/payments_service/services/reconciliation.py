"""Bring a transaction in line with what Paystack reports for it.

Used when a webhook never arrived: the admin asks Paystack for the charge or
transfer by reference and the reported outcome is applied through the state
machine, the same way the webhook would have applied it.
"""

from typing import Optional

from fastapi import HTTPException, status
from libs.common.datetime_utils import from_paystack_timestamp
from libs.common.logging import get_logger
from services.payments_service.models import (
    PaymentProcessor,
    PaymentTransaction,
    PaymentTransactionStatus,
)
from services.payments_service.paystack_client import PaystackClient
from services.payments_service.services.donations import (
    get_donation_for_transaction,
    mark_donation_failed,
    mark_donation_succeeded,
)
from services.payments_service.services.transactions import update_transaction_status
from services.payments_service.services.withdrawals import TRANSFER_STATUS_MAP
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CHARGE_STATUS_MAP = {
    "success": PaymentTransactionStatus.SUCCESS,
    "failed": PaymentTransactionStatus.FAILED,
    "abandoned": PaymentTransactionStatus.FAILED,
    "reversed": PaymentTransactionStatus.REFUNDED,
}


async def _reconcile_charge(
    db: AsyncSession, paystack: PaystackClient, transaction: PaymentTransaction
) -> Optional[PaymentTransactionStatus]:
    verified = await paystack.verify_transaction(transaction.processor_ref)
    target = CHARGE_STATUS_MAP.get(verified.status)
    if target is None or target == transaction.status:
        return None

    if target == PaymentTransactionStatus.SUCCESS and verified.amount != transaction.amount:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Amount mismatch: expected {transaction.amount} minor units, "
                f"Paystack reports {verified.amount}"
            ),
        )

    succeeded = target == PaymentTransactionStatus.SUCCESS
    if succeeded and transaction.status == PaymentTransactionStatus.FAILED:
        await update_transaction_status(
            db, transaction, PaymentTransactionStatus.PENDING, commit=False
        )

    completed_at = from_paystack_timestamp(verified.paid_at)
    await update_transaction_status(
        db,
        transaction,
        target,
        status_message=verified.gateway_response,
        processor_transaction_id=verified.transaction_id,
        payment_method=verified.channel,
        fees=verified.fees if succeeded else None,
        completed_at=completed_at if succeeded else None,
        commit=False,
    )

    donation = await get_donation_for_transaction(db, transaction.id)
    if donation is not None:
        if succeeded:
            mark_donation_succeeded(donation, completed_at)
        elif target == PaymentTransactionStatus.REFUNDED:
            mark_donation_failed(donation, "Payment refunded")
        else:
            mark_donation_failed(donation, verified.gateway_response or "Payment failed")
        db.add(donation)
    return target


async def _reconcile_transfer(
    db: AsyncSession, paystack: PaystackClient, transaction: PaymentTransaction
) -> Optional[PaymentTransactionStatus]:
    transfer = await paystack.verify_transfer(transaction.processor_ref)
    target = TRANSFER_STATUS_MAP.get(transfer.status)
    if target is None or target == transaction.status:
        return None

    await update_transaction_status(
        db,
        transaction,
        target,
        status_message=f"Transfer {transfer.status}",
        processor_transaction_id=transfer.transfer_code or None,
        fees=transfer.fee_charged or None,
        commit=False,
    )
    return target


async def reconcile_transaction(
    db: AsyncSession, paystack: PaystackClient, transaction: PaymentTransaction
) -> PaymentTransaction:
    """
    Verify ``transaction`` with Paystack and apply the reported outcome.

    Pending outcomes leave the transaction untouched. Outcomes the state
    machine rejects raise 409 without changing anything.
    """
    previous = transaction.status
    if transaction.processor == PaymentProcessor.PAYSTACK_TRANSFER:
        target = await _reconcile_transfer(db, paystack, transaction)
    else:
        target = await _reconcile_charge(db, paystack, transaction)

    if target is None:
        logger.info(
            "reconcile.unchanged",
            extra={
                "extra_fields": {
                    "transaction_id": str(transaction.id),
                    "status": previous.value,
                }
            },
        )
        return transaction

    await db.commit()
    await db.refresh(transaction)
    logger.info(
        "reconcile.applied",
        extra={
            "extra_fields": {
                "transaction_id": str(transaction.id),
                "from_status": previous.value,
                "to_status": target.value,
            }
        },
    )
    return transaction
