"""Payments Service schemas package."""

from services.payments_service.schemas.main import (
    BalanceResponse,
    BankResponse,
    DonationCheckoutResponse,
    DonationCreate,
    DonationStatusResponse,
    RefundCreate,
    RefundResponse,
    TransactionResponse,
    TransactionStatusUpdate,
    WithdrawalAccountCreate,
    WithdrawalAccountResponse,
    WithdrawalCreate,
)

__all__ = [
    "BalanceResponse",
    "BankResponse",
    "DonationCheckoutResponse",
    "DonationCreate",
    "DonationStatusResponse",
    "RefundCreate",
    "RefundResponse",
    "TransactionResponse",
    "TransactionStatusUpdate",
    "WithdrawalAccountCreate",
    "WithdrawalAccountResponse",
    "WithdrawalCreate",
]
