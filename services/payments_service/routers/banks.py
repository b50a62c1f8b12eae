"""Bank and mobile money provider lookup for the withdrawal account form."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from services.payments_service.paystack_client import (
    PaystackClient,
    get_paystack_client,
)
from services.payments_service.schemas import BankResponse

router = APIRouter(
    prefix="/payments",
    tags=["banks"],
    dependencies=[Depends(get_current_user)],
)


@router.get("/banks", response_model=list[BankResponse])
async def list_banks(
    type: Optional[str] = Query(default=None, description="e.g. mobile_money, ghipss"),
    country: str = "ghana",
    paystack: PaystackClient = Depends(get_paystack_client),
):
    banks = await paystack.list_banks(country=country, type=type)
    return [bank for bank in banks if bank.is_active]
