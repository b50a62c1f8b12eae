import secrets
import uuid
from datetime import datetime

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.payments_service.models.enums import (
    DonationStatus,
    PaymentProcessor,
    PaymentTransactionStatus,
    RefundStatus,
    WebhookEventStatus,
    WithdrawalAccountType,
    enum_values,
)
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

MAX_TRANSACTION_AMOUNT = 500_000_000
MAX_DONATION_AMOUNT = 100_000_000


class PaymentTransaction(Base):
    """A single charge or withdrawal attempt at the payment processor."""

    __tablename__ = "payment_transactions"
    __table_args__ = (
        CheckConstraint(
            f"amount > 0 AND amount <= {MAX_TRANSACTION_AMOUNT}",
            name="payment_amount_check",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[str | None] = mapped_column(
        String(64), index=True, nullable=True
    )

    processor: Mapped[PaymentProcessor] = mapped_column(
        SAEnum(
            PaymentProcessor,
            name="payment_processor_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    processor_ref: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )
    processor_transaction_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )

    # Minor units (pesewas/kobo)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    fees: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="GHS", nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)

    status: Mapped[PaymentTransactionStatus] = mapped_column(
        SAEnum(
            PaymentTransactionStatus,
            name="payment_transaction_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentTransactionStatus.PENDING,
        nullable=False,
    )
    status_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # "metadata" is reserved by SQLAlchemy's Declarative API, so the column
    # named "metadata" is mapped onto a safe attribute name.
    transaction_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @staticmethod
    def generate_withdrawal_reference() -> str:
        return f"wdl_{secrets.token_hex(8)}"

    def __repr__(self):
        return f"<PaymentTransaction {self.processor_ref} {self.status}>"


class Donation(Base):
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint(
            f"amount > 0 AND amount <= {MAX_DONATION_AMOUNT}",
            name="donation_amount_check",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    # Denormalized from the campaign so balances can be summed per organization
    organization_id: Mapped[str] = mapped_column(
        String(64), index=True, nullable=False
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="GHS", nullable=False)
    reference: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )
    payment_transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("payment_transactions.id"), nullable=True
    )

    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    donor_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    donor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    donor_email: Mapped[str | None] = mapped_column(
        String(255), index=True, nullable=True
    )
    donor_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    show_message: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    status: Mapped[DonationStatus] = mapped_column(
        SAEnum(
            DonationStatus,
            name="donation_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=DonationStatus.PENDING,
        index=True,
        nullable=False,
    )
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), index=True, nullable=True
    )
    failed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @staticmethod
    def generate_reference() -> str:
        return f"don_{secrets.token_hex(8)}"

    def __repr__(self):
        return f"<Donation {self.reference} {self.status}>"


class Refund(Base):
    __tablename__ = "refunds"
    __table_args__ = (
        CheckConstraint(
            f"amount > 0 AND amount <= {MAX_TRANSACTION_AMOUNT}",
            name="refund_amount_check",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    donation_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("donations.id"), nullable=True
    )
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("payment_transactions.id"), index=True, nullable=False
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)

    processor: Mapped[str] = mapped_column(String(32), nullable=False)
    processor_refund_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    status: Mapped[RefundStatus] = mapped_column(
        SAEnum(
            RefundStatus,
            name="refund_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RefundStatus.PENDING,
        nullable=False,
    )

    initiated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class WebhookEvent(Base):
    """Audit trail of provider webhooks; the unique event id makes ingestion idempotent."""

    __tablename__ = "webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    processor: Mapped[str] = mapped_column(
        String(32), default="paystack", nullable=False
    )
    processor_event_id: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    signature: Mapped[str] = mapped_column(Text, nullable=False)
    raw_payload: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[WebhookEventStatus] = mapped_column(
        SAEnum(
            WebhookEventStatus,
            name="webhook_event_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=WebhookEventStatus.PENDING,
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


class WithdrawalAccount(Base):
    """Payout destination of an organization, registered as a Paystack transfer recipient."""

    __tablename__ = "withdrawal_accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[str] = mapped_column(
        String(64), index=True, nullable=False
    )
    account_type: Mapped[WithdrawalAccountType] = mapped_column(
        SAEnum(
            WithdrawalAccountType,
            name="withdrawal_account_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    bank_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    account_number: Mapped[str] = mapped_column(String(32), nullable=False)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mobile_money_provider: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )
    recipient_code: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def display_name(self) -> str:
        return self.name or self.account_name or self.account_number
