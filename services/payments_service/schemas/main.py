import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from services.payments_service.models import (
    DonationStatus,
    PaymentProcessor,
    PaymentTransactionStatus,
    RefundStatus,
    WithdrawalAccountType,
)
from services.payments_service.models.core import MAX_DONATION_AMOUNT

# ---------------------------------------------------------------------------
# Donations
# ---------------------------------------------------------------------------


class DonationCreate(BaseModel):
    campaign_id: str
    organization_id: str
    amount: int = Field(gt=0, le=MAX_DONATION_AMOUNT)  # minor units
    currency: str = Field(default="GHS", min_length=3, max_length=8)
    donor_email: EmailStr
    donor_name: Optional[str] = None
    donor_id: Optional[str] = None
    donor_message: Optional[str] = Field(default=None, max_length=1000)
    is_anonymous: bool = False
    show_message: bool = True


class DonationCheckoutResponse(BaseModel):
    donation_id: uuid.UUID
    reference: str
    authorization_url: str
    access_code: str


class DonationStatusResponse(BaseModel):
    reference: str
    status: DonationStatus
    amount: int
    currency: str
    campaign_id: str
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Transactions & refunds
# ---------------------------------------------------------------------------


class TransactionResponse(BaseModel):
    id: uuid.UUID
    organization_id: Optional[str] = None
    processor: PaymentProcessor
    processor_ref: str
    processor_transaction_id: Optional[str] = None
    amount: int
    fees: int
    currency: str
    payment_method: Optional[str] = None
    status: PaymentTransactionStatus
    status_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    allowed_transitions: list[PaymentTransactionStatus] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class TransactionStatusUpdate(BaseModel):
    status: PaymentTransactionStatus
    status_message: Optional[str] = None


class RefundCreate(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    amount: Optional[int] = Field(default=None, gt=0)  # defaults to full amount


class RefundResponse(BaseModel):
    id: uuid.UUID
    transaction_id: uuid.UUID
    donation_id: Optional[uuid.UUID] = None
    amount: int
    reason: str
    status: RefundStatus
    processor_refund_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------


class WithdrawalAccountCreate(BaseModel):
    account_type: WithdrawalAccountType
    account_number: str = Field(min_length=5, max_length=32)
    bank_code: str
    name: Optional[str] = None
    mobile_money_provider: Optional[str] = None


class WithdrawalAccountResponse(BaseModel):
    id: uuid.UUID
    organization_id: str
    account_type: WithdrawalAccountType
    bank_code: Optional[str] = None
    account_number: str
    account_name: Optional[str] = None
    name: Optional[str] = None
    mobile_money_provider: Optional[str] = None
    recipient_code: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WithdrawalCreate(BaseModel):
    account_id: uuid.UUID
    amount: int = Field(gt=0)  # minor units, excluding the transfer fee
    currency: str = Field(default="GHS", min_length=3, max_length=8)


class BalanceResponse(BaseModel):
    total_raised: int
    completed_withdrawals: int
    pending_withdrawals: int
    available: int


class BankResponse(BaseModel):
    name: str
    code: str
    type: str

    model_config = ConfigDict(from_attributes=True)
