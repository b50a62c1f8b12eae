"""Organization withdrawal accounts, balances and transfers."""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.payments_service.models import (
    PaymentProcessor,
    PaymentTransaction,
    PaymentTransactionStatus,
    WithdrawalAccount,
    WithdrawalAccountType,
)
from services.payments_service.paystack_client import PaystackClient, PaystackError
from services.payments_service.services.donations import total_raised_by_organization
from services.payments_service.services.transactions import (
    create_transaction,
    total_withdrawals_by_status,
    update_transaction_status,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Paystack transfer status -> transaction status; anything else stays PENDING.
TRANSFER_STATUS_MAP = {
    "success": PaymentTransactionStatus.SUCCESS,
    "failed": PaymentTransactionStatus.FAILED,
    "reversed": PaymentTransactionStatus.FAILED,
}


@dataclass
class OrganizationBalance:
    total_raised: int
    completed_withdrawals: int
    pending_withdrawals: int

    @property
    def available(self) -> int:
        return max(
            0, self.total_raised - self.completed_withdrawals - self.pending_withdrawals
        )


def transfer_fee(account_type: WithdrawalAccountType) -> int:
    settings = get_settings()
    if account_type == WithdrawalAccountType.MOBILE_MONEY:
        return settings.MOBILE_MONEY_TRANSFER_FEE
    return settings.GHIPSS_TRANSFER_FEE


async def get_organization_balance(
    db: AsyncSession, organization_id: str
) -> OrganizationBalance:
    return OrganizationBalance(
        total_raised=await total_raised_by_organization(db, organization_id),
        completed_withdrawals=await total_withdrawals_by_status(
            db, organization_id, PaymentTransactionStatus.SUCCESS
        ),
        pending_withdrawals=await total_withdrawals_by_status(
            db, organization_id, PaymentTransactionStatus.PENDING
        ),
    )


# ---------------------------------------------------------------------------
# Withdrawal accounts
# ---------------------------------------------------------------------------


async def list_withdrawal_accounts(
    db: AsyncSession, organization_id: str
) -> list[WithdrawalAccount]:
    result = await db.execute(
        select(WithdrawalAccount)
        .where(
            WithdrawalAccount.organization_id == organization_id,
            WithdrawalAccount.deleted_at.is_(None),
        )
        .order_by(WithdrawalAccount.created_at.desc())
    )
    return list(result.scalars().all())


async def get_withdrawal_account(
    db: AsyncSession, organization_id: str, account_id: uuid.UUID
) -> WithdrawalAccount:
    result = await db.execute(
        select(WithdrawalAccount).where(
            WithdrawalAccount.id == account_id,
            WithdrawalAccount.organization_id == organization_id,
            WithdrawalAccount.deleted_at.is_(None),
        )
    )
    account = result.scalar_one_or_none()
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Withdrawal account not found",
        )
    return account


async def create_withdrawal_account(
    db: AsyncSession,
    paystack: PaystackClient,
    *,
    organization_id: str,
    account_type: WithdrawalAccountType,
    account_number: str,
    bank_code: str,
    name: Optional[str] = None,
    mobile_money_provider: Optional[str] = None,
) -> WithdrawalAccount:
    """
    Register a payout destination with Paystack and store it.

    Bank accounts are resolved first so the stored account name is the one
    the bank reports; mobile money numbers cannot be resolved.
    """
    account_name = name
    if account_type == WithdrawalAccountType.GHIPSS:
        resolved = await paystack.resolve_account(account_number, bank_code)
        account_name = resolved.account_name or name

    recipient = await paystack.create_transfer_recipient(
        recipient_type=account_type.value,
        account_number=account_number,
        bank_code=bank_code,
        name=account_name or account_number,
    )

    account = WithdrawalAccount(
        organization_id=organization_id,
        account_type=account_type,
        bank_code=bank_code,
        account_number=account_number,
        account_name=account_name,
        name=name,
        mobile_money_provider=mobile_money_provider,
        recipient_code=recipient.recipient_code,
    )
    db.add(account)
    await db.commit()
    await db.refresh(account)
    return account


async def delete_withdrawal_account(
    db: AsyncSession, organization_id: str, account_id: uuid.UUID
) -> None:
    account = await get_withdrawal_account(db, organization_id, account_id)
    account.deleted_at = utc_now()
    db.add(account)
    await db.commit()


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


async def request_withdrawal(
    db: AsyncSession,
    paystack: PaystackClient,
    *,
    organization_id: str,
    account_id: uuid.UUID,
    amount: int,
    currency: str,
) -> PaymentTransaction:
    """
    Transfer ``amount`` minor units to one of the organization's accounts.

    The amount plus the transfer fee must fit in the available balance. The
    transaction follows the status Paystack reports for the transfer: success
    and failure are applied at once, anything else stays PENDING until the
    transfer webhook arrives.
    """
    account = await get_withdrawal_account(db, organization_id, account_id)

    fee = transfer_fee(account.account_type)
    balance = await get_organization_balance(db, organization_id)
    if amount + fee > balance.available:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Insufficient balance (including transfer fee)",
        )

    reference = PaymentTransaction.generate_withdrawal_reference()
    transaction = await create_transaction(
        db,
        processor=PaymentProcessor.PAYSTACK_TRANSFER,
        processor_ref=reference,
        amount=amount,
        currency=currency,
        organization_id=organization_id,
        transaction_metadata={
            "type": "withdrawal",
            "organization_id": organization_id,
            "withdrawal_account_id": str(account.id),
            "recipient_code": account.recipient_code,
        },
    )

    try:
        transfer = await paystack.initiate_transfer(
            recipient_code=account.recipient_code,
            amount=amount,
            reason=f"Withdrawal to {account.display_name}",
            reference=reference,
            currency=currency,
        )
    except PaystackError as e:
        await update_transaction_status(
            db, transaction, PaymentTransactionStatus.FAILED, status_message=e.message
        )
        logger.error(
            "request_withdrawal.error",
            extra={
                "extra_fields": {
                    "organization_id": organization_id,
                    "transaction_id": str(transaction.id),
                    "error": e.message,
                }
            },
        )
        raise

    transaction.processor_transaction_id = transfer.transfer_code or None
    transaction.fees = transfer.fee_charged
    new_status = TRANSFER_STATUS_MAP.get(transfer.status, PaymentTransactionStatus.PENDING)
    status_message = (
        f"Transfer {transfer.status}"
        if new_status == PaymentTransactionStatus.FAILED
        else None
    )
    transaction = await update_transaction_status(
        db, transaction, new_status, status_message=status_message
    )

    logger.info(
        "request_withdrawal.success",
        extra={
            "extra_fields": {
                "organization_id": organization_id,
                "transaction_id": str(transaction.id),
                "transfer_code": transfer.transfer_code,
                "status": transfer.status,
            }
        },
    )
    return transaction
