"""Admin endpoints for inspecting, correcting and refunding transactions."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.payments_service.models import PaymentTransaction
from services.payments_service.paystack_client import (
    PaystackClient,
    get_paystack_client,
)
from services.payments_service.schemas import (
    RefundCreate,
    RefundResponse,
    TransactionResponse,
    TransactionStatusUpdate,
)
from services.payments_service.services.reconciliation import reconcile_transaction
from services.payments_service.services.refunds import (
    list_refunds_for_transaction,
    request_refund,
)
from services.payments_service.services.transactions import (
    get_transaction_or_404,
    update_transaction_status,
)
from services.payments_service.state_machine import allowed_transitions
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(
    prefix="/payments/transactions",
    tags=["admin-transactions"],
    dependencies=[Depends(require_admin)],
)


def to_transaction_response(transaction: PaymentTransaction) -> TransactionResponse:
    response = TransactionResponse.model_validate(transaction)
    response.allowed_transitions = list(allowed_transitions(transaction.status))
    return response


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    transaction = await get_transaction_or_404(db, transaction_id)
    return to_transaction_response(transaction)


@router.patch("/{transaction_id}/status", response_model=TransactionResponse)
async def override_transaction_status(
    transaction_id: uuid.UUID,
    payload: TransactionStatusUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Manually move a transaction, e.g. after reconciling with the Paystack
    dashboard. Transitions the state machine rejects return 409.
    """
    transaction = await get_transaction_or_404(db, transaction_id)
    transaction = await update_transaction_status(
        db, transaction, payload.status, status_message=payload.status_message
    )
    return to_transaction_response(transaction)


@router.get("/{transaction_id}/refunds", response_model=list[RefundResponse])
async def list_refunds(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    await get_transaction_or_404(db, transaction_id)
    return await list_refunds_for_transaction(db, transaction_id)


@router.post(
    "/{transaction_id}/refunds",
    response_model=RefundResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_refund(
    transaction_id: uuid.UUID,
    payload: RefundCreate,
    db: AsyncSession = Depends(get_async_db),
    paystack: PaystackClient = Depends(get_paystack_client),
    current_user: AuthUser = Depends(require_admin),
):
    transaction = await get_transaction_or_404(db, transaction_id)
    return await request_refund(
        db,
        paystack,
        transaction,
        reason=payload.reason,
        amount=payload.amount,
        initiated_by=current_user.user_id,
    )


@router.post("/{transaction_id}/reconcile", response_model=TransactionResponse)
async def reconcile(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    """
    Verify the charge or transfer with Paystack and apply its outcome, for
    transactions whose webhook never arrived.
    """
    transaction = await get_transaction_or_404(db, transaction_id)
    transaction = await reconcile_transaction(db, paystack, transaction)
    return to_transaction_response(transaction)
