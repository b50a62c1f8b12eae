"""Organization withdrawal accounts, balance and withdrawal endpoints."""

import uuid

from fastapi import APIRouter, Depends, Response, status
from libs.auth.dependencies import require_organization_access
from libs.db.session import get_async_db
from services.payments_service.paystack_client import (
    PaystackClient,
    get_paystack_client,
)
from services.payments_service.routers.transactions import to_transaction_response
from services.payments_service.schemas import (
    BalanceResponse,
    TransactionResponse,
    WithdrawalAccountCreate,
    WithdrawalAccountResponse,
    WithdrawalCreate,
)
from services.payments_service.services.transactions import (
    list_withdrawals_for_organization,
)
from services.payments_service.services.withdrawals import (
    create_withdrawal_account,
    delete_withdrawal_account,
    get_organization_balance,
    list_withdrawal_accounts,
    request_withdrawal,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(
    prefix="/payments/organizations/{organization_id}",
    tags=["withdrawals"],
    dependencies=[Depends(require_organization_access)],
)


@router.get("/withdrawal-accounts", response_model=list[WithdrawalAccountResponse])
async def list_accounts(
    organization_id: str,
    db: AsyncSession = Depends(get_async_db),
):
    return await list_withdrawal_accounts(db, organization_id)


@router.post(
    "/withdrawal-accounts",
    response_model=WithdrawalAccountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_account(
    organization_id: str,
    payload: WithdrawalAccountCreate,
    db: AsyncSession = Depends(get_async_db),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    return await create_withdrawal_account(
        db,
        paystack,
        organization_id=organization_id,
        account_type=payload.account_type,
        account_number=payload.account_number,
        bank_code=payload.bank_code,
        name=payload.name,
        mobile_money_provider=payload.mobile_money_provider,
    )


@router.delete(
    "/withdrawal-accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_account(
    organization_id: str,
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    await delete_withdrawal_account(db, organization_id, account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    organization_id: str,
    db: AsyncSession = Depends(get_async_db),
):
    balance = await get_organization_balance(db, organization_id)
    return BalanceResponse(
        total_raised=balance.total_raised,
        completed_withdrawals=balance.completed_withdrawals,
        pending_withdrawals=balance.pending_withdrawals,
        available=balance.available,
    )


@router.get("/withdrawals", response_model=list[TransactionResponse])
async def list_withdrawals(
    organization_id: str,
    db: AsyncSession = Depends(get_async_db),
):
    withdrawals = await list_withdrawals_for_organization(db, organization_id)
    return [to_transaction_response(w) for w in withdrawals]


@router.post(
    "/withdrawals",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_withdrawal(
    organization_id: str,
    payload: WithdrawalCreate,
    db: AsyncSession = Depends(get_async_db),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    transaction = await request_withdrawal(
        db,
        paystack,
        organization_id=organization_id,
        account_id=payload.account_id,
        amount=payload.amount,
        currency=payload.currency,
    )
    return to_transaction_response(transaction)
