"""
Notification sink for lifecycle events.

Responsibilities:
- Describe an accepted transition as a LifecycleEvent
- Hand events to external listeners (webhooks) after the transition commits

The lifecycle engine only emits events; delivery belongs to the sink, and a
failing sink never affects the committed transition.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models import DocumentStatus

logger = logging.getLogger(__name__)


DOCUMENT_CREATED = 'document.created'
STATUS_CHANGED = 'document.status_changed'
STEP_APPROVED = 'document.step_approved'
STEP_SUBMITTED = 'document.step_submitted'
SIGNATURE_CREATED = 'document.signature_created'
DOCUMENT_COMPLETED = 'document.completed'


@dataclass(frozen=True)
class LifecycleEvent:
    """One accepted transition, as published to the sink."""
    event_type: str
    document_id: int
    client_id: int
    document_name: str
    old_status: Optional[str]
    new_status: str
    actor: str
    action: str
    timestamp: datetime

    @property
    def completed(self) -> bool:
        return self.new_status == DocumentStatus.CONCLUIDO and self.old_status != DocumentStatus.CONCLUIDO

    def to_payload(self) -> dict:
        return {
            'document_id': self.document_id,
            'client_id': self.client_id,
            'document_name': self.document_name,
            'old_status': self.old_status,
            'new_status': self.new_status,
            'actor': self.actor,
            'action': self.action,
            'timestamp': self.timestamp.isoformat(),
        }


class NotificationSink(ABC):
    """Receives lifecycle events after commit."""

    @abstractmethod
    def publish(self, event: LifecycleEvent):
        raise NotImplementedError


class WebhookNotificationSink(NotificationSink):
    """Fan events out to subscribed webhooks."""

    def publish(self, event: LifecycleEvent):
        from .webhook_service import WebhookService

        logger.info(
            f"{event.event_type} on document {event.document_id}: "
            f"{event.old_status} -> {event.new_status} by {event.actor}"
        )
        payload = event.to_payload()
        WebhookService.trigger_event(event.event_type, payload, client_id=event.client_id)
        if event.completed and event.event_type != DOCUMENT_COMPLETED:
            WebhookService.trigger_event(DOCUMENT_COMPLETED, payload, client_id=event.client_id)


def publish_safely(sink: NotificationSink, event: LifecycleEvent):
    """Publish `event`, logging instead of raising on sink failure."""
    try:
        sink.publish(event)
    except Exception:
        logger.exception(f"Notification sink failed for {event.event_type} on document {event.document_id}")


# Singleton instance
_notification_sink = None


def get_notification_sink() -> NotificationSink:
    """Get singleton instance of the default (webhook) sink."""
    global _notification_sink
    if _notification_sink is None:
        _notification_sink = WebhookNotificationSink()
    return _notification_sink
