"""Payments Service models package."""

from services.payments_service.models.core import (
    Donation,
    PaymentTransaction,
    Refund,
    WebhookEvent,
    WithdrawalAccount,
)
from services.payments_service.models.enums import (
    DonationStatus,
    PaymentProcessor,
    PaymentTransactionStatus,
    RefundStatus,
    WebhookEventStatus,
    WithdrawalAccountType,
)

__all__ = [
    "Donation",
    "DonationStatus",
    "PaymentProcessor",
    "PaymentTransaction",
    "PaymentTransactionStatus",
    "Refund",
    "RefundStatus",
    "WebhookEvent",
    "WebhookEventStatus",
    "WithdrawalAccount",
    "WithdrawalAccountType",
]
