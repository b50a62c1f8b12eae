"""Paystack webhook ingestion.

Every delivery is stored in ``webhook_events`` keyed by the processor's event
id before it is applied. A redelivery of a PROCESSED event is acknowledged
without being applied twice; a FAILED one is applied again. Transaction status
changes go through the state machine. When it rejects a transition the whole
event is skipped, donation included, and logged rather than failed.
"""

import time
import uuid
from typing import Awaitable, Callable, Optional

from libs.common.currency import format_amount
from libs.common.datetime_utils import from_paystack_timestamp, utc_now
from libs.common.logging import get_logger
from services.payments_service.models import (
    Donation,
    DonationStatus,
    PaymentProcessor,
    PaymentTransaction,
    PaymentTransactionStatus,
    RefundStatus,
    WebhookEvent,
    WebhookEventStatus,
)
from services.payments_service.services.donations import (
    get_donation_by_reference,
    mark_donation_failed,
    mark_donation_succeeded,
)
from services.payments_service.services.refunds import settle_pending_refunds
from services.payments_service.services.transactions import (
    get_transaction_by_processor_ref,
    update_transaction_status,
)
from services.payments_service.services.webhook_events import (
    get_webhook_event_by_processor_event_id,
    mark_webhook_event_failed,
    mark_webhook_event_processed,
    save_webhook_event,
)
from services.payments_service.state_machine import (
    validate_payment_transaction_status_transition,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

ALREADY_PROCESSED = {"success": True, "message": "Event already processed"}


class WebhookProcessingError(Exception):
    """A delivery that cannot be applied; ``status_code`` is returned to Paystack."""

    def __init__(self, status_code: int, detail: str, event_error: str = None):
        self.status_code = status_code
        self.detail = detail
        self.event_error = event_error or detail
        super().__init__(detail)


def resolve_processor_event_id(payload: dict) -> str:
    """Use the event id, then the data id, else synthesize one from type and reference."""
    event_id = payload.get("id")
    if event_id is None:
        data = payload.get("data") or {}
        if data.get("id") is not None:
            event_id = f"{payload.get('event')}-{data['id']}"
        else:
            event_id = (
                f"{payload.get('event')}-{data.get('reference')}-{int(time.time() * 1000)}"
            )
    return str(event_id)


def _charge_reference(data: dict) -> Optional[str]:
    """Charge reference; refund and dispute payloads nest it under the transaction."""
    transaction = data.get("transaction")
    nested = transaction.get("reference") if isinstance(transaction, dict) else None
    return data.get("reference") or data.get("transaction_reference") or nested


async def _load_donation(db: AsyncSession, data: dict) -> Donation:
    reference = _charge_reference(data)
    donation = await get_donation_by_reference(db, reference) if reference else None
    if not donation:
        logger.error(
            "webhook.donation_not_found",
            extra={"extra_fields": {"reference": reference}},
        )
        raise WebhookProcessingError(404, "Donation not found")
    return donation


async def _donation_transaction(
    db: AsyncSession, donation: Donation
) -> Optional[PaymentTransaction]:
    if donation.payment_transaction_id is None:
        return None
    return await db.get(PaymentTransaction, donation.payment_transaction_id)


def _transition_allowed(
    transaction: Optional[PaymentTransaction], target: PaymentTransactionStatus
) -> bool:
    """True when there is no transaction to move or the state machine accepts the move."""
    if transaction is None:
        return True
    result = validate_payment_transaction_status_transition(transaction.status, target)
    if not result.allowed:
        logger.warning(
            "webhook.transition_rejected",
            extra={
                "extra_fields": {
                    "transaction_id": str(transaction.id),
                    "reason": result.reason,
                }
            },
        )
    return result.allowed


async def _move_transaction(
    db: AsyncSession,
    transaction: Optional[PaymentTransaction],
    target: PaymentTransactionStatus,
    **fields,
) -> bool:
    if transaction is None or not _transition_allowed(transaction, target):
        return False
    await update_transaction_status(db, transaction, target, commit=False, **fields)
    return True


async def _handle_charge_success(db: AsyncSession, data: dict) -> None:
    donation = await _load_donation(db, data)

    received = int(data.get("amount") or 0)
    if received != donation.amount:
        mark_donation_failed(
            donation,
            f"Amount mismatch: expected {format_amount(donation.amount, donation.currency)}, "
            f"but payment processor charged {format_amount(received, donation.currency)}",
        )
        db.add(donation)
        await db.commit()
        logger.error(
            "webhook.amount_mismatch",
            extra={
                "extra_fields": {
                    "donation_id": str(donation.id),
                    "expected_amount": donation.amount,
                    "actual_amount": received,
                }
            },
        )
        raise WebhookProcessingError(
            400,
            "Amount mismatch detected",
            event_error=(
                f"Amount mismatch: expected {donation.amount} minor units, "
                f"got {received} minor units"
            ),
        )

    if donation.status == DonationStatus.SUCCESS:
        logger.info(
            "webhook.charge_success.already_processed",
            extra={"extra_fields": {"reference": donation.reference}},
        )
        return

    transaction = await _donation_transaction(db, donation)
    # A failed attempt that was retried and succeeded is reopened first.
    reopen = (
        transaction is not None and transaction.status == PaymentTransactionStatus.FAILED
    )
    if not reopen and not _transition_allowed(transaction, PaymentTransactionStatus.SUCCESS):
        return

    paid_at = from_paystack_timestamp(data.get("paid_at")) or utc_now()
    mark_donation_succeeded(donation, paid_at)
    db.add(donation)

    if reopen:
        await _move_transaction(db, transaction, PaymentTransactionStatus.PENDING)
    processor_id = data.get("id")
    await _move_transaction(
        db,
        transaction,
        PaymentTransactionStatus.SUCCESS,
        processor_transaction_id=str(processor_id) if processor_id is not None else donation.reference,
        payment_method=data.get("channel"),
        fees=data.get("fees"),
        status_message=data.get("gateway_response"),
        completed_at=paid_at,
    )
    logger.info(
        "webhook.donation_success",
        extra={
            "extra_fields": {
                "donation_id": str(donation.id),
                "reference": donation.reference,
                "amount": received,
            }
        },
    )


async def _handle_charge_failed(db: AsyncSession, data: dict) -> None:
    donation = await _load_donation(db, data)
    if donation.status == DonationStatus.SUCCESS:
        logger.warning(
            "webhook.charge_failed.ignored_for_successful_donation",
            extra={"extra_fields": {"reference": donation.reference}},
        )
        return

    transaction = await _donation_transaction(db, donation)
    if not _transition_allowed(transaction, PaymentTransactionStatus.FAILED):
        return

    reason = data.get("gateway_response") or "Payment failed"
    mark_donation_failed(donation, reason)
    db.add(donation)
    await _move_transaction(
        db, transaction, PaymentTransactionStatus.FAILED, status_message=reason
    )
    logger.warning(
        "webhook.donation_failed",
        extra={"extra_fields": {"reference": donation.reference, "reason": reason}},
    )


async def _handle_dispute_create(db: AsyncSession, data: dict) -> None:
    donation = await _load_donation(db, data)
    transaction = await _donation_transaction(db, donation)
    if not _transition_allowed(transaction, PaymentTransactionStatus.DISPUTED):
        return

    mark_donation_failed(donation, "Payment disputed by donor")
    db.add(donation)
    await _move_transaction(
        db,
        transaction,
        PaymentTransactionStatus.DISPUTED,
        status_message=data.get("reason") or "Dispute opened",
    )
    logger.warning(
        "webhook.donation_disputed",
        extra={"extra_fields": {"reference": donation.reference}},
    )


async def _handle_dispute_resolve(db: AsyncSession, data: dict) -> None:
    donation = await _load_donation(db, data)
    transaction = await _donation_transaction(db, donation)
    won = data.get("status") == "resolved"
    target = PaymentTransactionStatus.SUCCESS if won else PaymentTransactionStatus.REFUNDED
    if not _transition_allowed(transaction, target):
        return

    if won:
        mark_donation_succeeded(donation)
        db.add(donation)
        await _move_transaction(
            db, transaction, PaymentTransactionStatus.SUCCESS, status_message="Dispute resolved"
        )
        logger.info(
            "webhook.dispute_resolved",
            extra={"extra_fields": {"reference": donation.reference}},
        )
        return

    mark_donation_failed(donation, "Dispute lost")
    db.add(donation)
    await _move_transaction(
        db, transaction, PaymentTransactionStatus.REFUNDED, status_message="Dispute lost"
    )
    logger.warning(
        "webhook.dispute_lost",
        extra={"extra_fields": {"reference": donation.reference}},
    )


async def _handle_refund_pending(db: AsyncSession, data: dict) -> None:
    donation = await _load_donation(db, data)
    await _move_transaction(
        db,
        await _donation_transaction(db, donation),
        PaymentTransactionStatus.REFUND_PENDING,
        status_message="Refund pending",
    )


async def _handle_refund_processed(db: AsyncSession, data: dict) -> None:
    donation = await _load_donation(db, data)
    transaction = await _donation_transaction(db, donation)
    if not _transition_allowed(transaction, PaymentTransactionStatus.REFUNDED):
        return

    mark_donation_failed(donation, "Payment refunded")
    db.add(donation)
    await _move_transaction(
        db,
        transaction,
        PaymentTransactionStatus.REFUNDED,
        status_message="Refund processed successfully",
    )
    if transaction is not None:
        refund_id = data.get("id")
        await settle_pending_refunds(
            db,
            transaction.id,
            RefundStatus.SUCCESS,
            processor_refund_id=str(refund_id) if refund_id is not None else None,
        )
    logger.info(
        "webhook.donation_refunded",
        extra={"extra_fields": {"reference": donation.reference}},
    )


async def _handle_refund_failed(db: AsyncSession, data: dict) -> None:
    donation = await _load_donation(db, data)
    transaction = await _donation_transaction(db, donation)
    await _move_transaction(
        db, transaction, PaymentTransactionStatus.SUCCESS, status_message="Refund failed"
    )
    if transaction is not None:
        await settle_pending_refunds(db, transaction.id, RefundStatus.FAILED)
    logger.warning(
        "webhook.refund_failed",
        extra={"extra_fields": {"reference": donation.reference}},
    )


async def _load_withdrawal(db: AsyncSession, data: dict) -> Optional[PaymentTransaction]:
    reference = data.get("reference")
    transaction = (
        await get_transaction_by_processor_ref(db, reference) if reference else None
    )
    if not transaction or transaction.processor != PaymentProcessor.PAYSTACK_TRANSFER:
        logger.warning(
            "webhook.withdrawal_not_found",
            extra={"extra_fields": {"reference": reference}},
        )
        return None
    return transaction


async def _handle_transfer_success(db: AsyncSession, data: dict) -> None:
    transaction = await _load_withdrawal(db, data)
    if transaction is None:
        return
    await _move_transaction(
        db,
        transaction,
        PaymentTransactionStatus.SUCCESS,
        processor_transaction_id=data.get("transfer_code"),
        fees=data.get("fee_charged"),
        status_message="Transfer completed",
    )
    logger.info(
        "webhook.withdrawal_success",
        extra={"extra_fields": {"reference": transaction.processor_ref}},
    )


async def _handle_transfer_failed(db: AsyncSession, data: dict) -> None:
    transaction = await _load_withdrawal(db, data)
    if transaction is None:
        return
    reason = data.get("reason") or data.get("message") or "Transfer failed"
    await _move_transaction(
        db, transaction, PaymentTransactionStatus.FAILED, status_message=reason
    )
    logger.warning(
        "webhook.withdrawal_failed",
        extra={
            "extra_fields": {"reference": transaction.processor_ref, "reason": reason}
        },
    )


EVENT_HANDLERS: dict[str, Callable[[AsyncSession, dict], Awaitable[None]]] = {
    "charge.success": _handle_charge_success,
    "charge.failed": _handle_charge_failed,
    "charge.dispute.create": _handle_dispute_create,
    "charge.dispute.resolve": _handle_dispute_resolve,
    "refund.pending": _handle_refund_pending,
    "refund.processed": _handle_refund_processed,
    "refund.failed": _handle_refund_failed,
    "transfer.success": _handle_transfer_success,
    "transfer.failed": _handle_transfer_failed,
    "transfer.reversed": _handle_transfer_failed,
}


async def ingest_paystack_event(
    db: AsyncSession, payload: dict, raw_body: str, signature: str
) -> dict:
    """
    Store and apply one verified Paystack delivery; returns the response body.

    Only PROCESSED events are acknowledged without work; a FAILED or PENDING
    event with the same id is applied again. Raises WebhookProcessingError for
    deliveries that cannot be applied. Any other exception also marks the
    stored event FAILED before propagating.
    """
    event_type = payload.get("event") or "unknown"
    data = payload.get("data") or {}
    processor_event_id = resolve_processor_event_id(payload)

    logger.info(
        "webhook.received",
        extra={
            "extra_fields": {
                "event": event_type,
                "reference": _charge_reference(data),
                "event_id": processor_event_id,
            }
        },
    )

    existing = await get_webhook_event_by_processor_event_id(db, processor_event_id)
    if existing and existing.status == WebhookEventStatus.PROCESSED:
        logger.info(
            "webhook.duplicate_event",
            extra={"extra_fields": {"event_id": processor_event_id}},
        )
        return ALREADY_PROCESSED

    if existing:
        # Redelivery of an event that failed or never finished: apply it again.
        logger.info(
            "webhook.retrying_event",
            extra={
                "extra_fields": {
                    "event_id": processor_event_id,
                    "status": existing.status.value,
                    "previous_error": existing.error_message,
                }
            },
        )
        stored_id: uuid.UUID = existing.id
    else:
        stored = await save_webhook_event(
            db,
            processor_event_id=processor_event_id,
            event_type=event_type,
            signature=signature,
            raw_payload=raw_body,
        )
        if stored is None:
            return ALREADY_PROCESSED
        stored_id = stored.id

    handler = EVENT_HANDLERS.get(event_type)
    try:
        if handler is None:
            logger.info(
                "webhook.unhandled_event",
                extra={"extra_fields": {"event": event_type}},
            )
        else:
            await handler(db, data)
            await db.commit()
    except WebhookProcessingError as e:
        await _record_failure(db, stored_id, e.event_error)
        raise
    except Exception as e:
        await _record_failure(db, stored_id, str(e) or e.__class__.__name__)
        raise

    event = await db.get(WebhookEvent, stored_id)
    await mark_webhook_event_processed(db, event)
    return {"success": True}


async def _record_failure(db: AsyncSession, event_id: uuid.UUID, error: str) -> None:
    await db.rollback()
    event = await db.get(WebhookEvent, event_id)
    if event is not None:
        await mark_webhook_event_failed(db, event, error)
