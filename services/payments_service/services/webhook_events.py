"""Webhook event store used for audit and idempotent ingestion."""

from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.payments_service.models import WebhookEvent, WebhookEventStatus
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def get_webhook_event_by_processor_event_id(
    db: AsyncSession, processor_event_id: str
) -> Optional[WebhookEvent]:
    result = await db.execute(
        select(WebhookEvent).where(WebhookEvent.processor_event_id == processor_event_id)
    )
    return result.scalar_one_or_none()


async def save_webhook_event(
    db: AsyncSession,
    *,
    processor_event_id: str,
    event_type: str,
    signature: str,
    raw_payload: str,
    processor: str = "paystack",
) -> Optional[WebhookEvent]:
    """
    Store a freshly received event as PENDING.

    Returns None when another delivery of the same event won the insert.
    """
    event = WebhookEvent(
        processor=processor,
        processor_event_id=processor_event_id,
        event_type=event_type,
        signature=signature,
        raw_payload=raw_payload,
        status=WebhookEventStatus.PENDING,
    )
    db.add(event)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info(
            f"Webhook event {processor_event_id} stored concurrently",
            extra={"extra_fields": {"processor_event_id": processor_event_id}},
        )
        return None
    await db.refresh(event)
    return event


async def mark_webhook_event_processed(db: AsyncSession, event: WebhookEvent) -> None:
    event.status = WebhookEventStatus.PROCESSED
    event.processed_at = utc_now()
    event.error_message = None
    db.add(event)
    await db.commit()


async def mark_webhook_event_failed(
    db: AsyncSession, event: WebhookEvent, error_message: str
) -> None:
    event.status = WebhookEventStatus.FAILED
    event.error_message = error_message
    event.processed_at = utc_now()
    db.add(event)
    await db.commit()
