"""
Webhook fan-out of lifecycle events.

Responsibilities:
- Record one WebhookEvent per active webhook that accepts the event
- Deliver HMAC-signed JSON bodies through Celery, retrying on a fixed schedule
  (queued with a countdown on a worker, swept by retry_due_webhook_events
  when tasks run inline)
- Keep a log row per attempt and delivery counters per webhook
"""

import hashlib
import hmac
import json
import logging
import time
from datetime import timedelta

import requests
from celery import shared_task
from django.conf import settings
from django.db.models import F
from django.utils import timezone

from ..models import Webhook, WebhookDeliveryLog, WebhookEvent

logger = logging.getLogger(__name__)


SIGNATURE_HEADER = 'X-Webhook-Signature'
EVENT_HEADER = 'X-Webhook-Event'
DELIVERY_HEADER = 'X-Webhook-Delivery'


class WebhookService:
    """Queues, signs and delivers lifecycle events to registered webhooks."""

    MAX_RETRIES = 3
    # Wait before retry 1, 2 and 3, in seconds
    RETRY_DELAYS = (60, 5 * 60, 15 * 60)

    @staticmethod
    def request_timeout():
        return getattr(settings, 'WEBHOOK_REQUEST_TIMEOUT', 10)

    @staticmethod
    def subscribers(event_type, client_id=None):
        """Active webhooks accepting `event_type` for `client_id`."""
        # JSON containment lookups are not portable to SQLite
        return [
            webhook for webhook in Webhook.objects.filter(is_active=True)
            if webhook.accepts(event_type, client_id)
        ]

    @staticmethod
    def trigger_event(event_type: str, payload: dict, client_id=None):
        """
        Record `event_type` for every subscriber and queue its delivery.

        Returns:
            list: created WebhookEvent instances
        """
        subscribers = WebhookService.subscribers(event_type, client_id)
        if not subscribers:
            return []

        logger.info(f"Queueing {event_type} for {len(subscribers)} webhook(s) of client {client_id}")
        queued = []
        for webhook in subscribers:
            event = WebhookEvent.objects.create(webhook=webhook, event_type=event_type, payload=payload)
            queued.append(event)
            try:
                deliver_webhook_event.delay(event.pk)
            except Exception:
                logger.exception(f"Could not queue delivery of webhook event {event.pk}")
        return queued

    # ----------------------------
    # Signing
    # ----------------------------

    @staticmethod
    def build_body(event) -> str:
        """Delivery body: the event payload plus delivery metadata, keys sorted."""
        body = dict(event.payload)
        body.update({
            '_webhook_id': event.webhook_id,
            '_event_type': event.event_type,
            '_timestamp': timezone.now().isoformat(),
        })
        return json.dumps(body, sort_keys=True)

    @staticmethod
    def sign_body(secret: str, body: str) -> str:
        """Hex HMAC-SHA256 of `body` under `secret`."""
        return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()

    @staticmethod
    def verify_signature(webhook, body: str, signature: str) -> bool:
        """Constant-time check of a received body against its signature header."""
        return hmac.compare_digest(WebhookService.sign_body(webhook.secret, body), signature or '')

    # ----------------------------
    # Delivery
    # ----------------------------

    @staticmethod
    def deliver_event(event: WebhookEvent, retry_attempt: int = 0) -> bool:
        """
        Make one delivery attempt.

        A failed attempt schedules the next one until MAX_RETRIES retries
        are spent, after which the event is marked failed.

        Args:
            event: WebhookEvent with its webhook
            retry_attempt: 0 for the first attempt, n for the n-th retry

        Returns:
            bool: True when the endpoint answered 2xx
        """
        webhook = event.webhook
        body = WebhookService.build_body(event)
        headers = {
            'Content-Type': 'application/json',
            SIGNATURE_HEADER: WebhookService.sign_body(webhook.secret, body),
            EVENT_HEADER: event.event_type,
            DELIVERY_HEADER: str(event.pk),
        }
        event.attempt_count = retry_attempt + 1

        started = time.monotonic()
        try:
            response = requests.post(
                webhook.url,
                data=body,
                headers=headers,
                timeout=WebhookService.request_timeout(),
            )
        except requests.exceptions.RequestException as e:
            error = WebhookService._describe(e)
            WebhookDeliveryLog.objects.create(event=event, error_message=error)
        else:
            WebhookDeliveryLog.objects.create(
                event=event,
                status_code=response.status_code,
                response_body=response.text[:1000],
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            if 200 <= response.status_code < 300:
                WebhookService._mark_delivered(event)
                return True
            error = f"HTTP {response.status_code}: {response.text[:200]}"

        WebhookService._mark_attempt_failed(event, retry_attempt, error)
        return False

    @staticmethod
    def record_outcome(webhook, delivered: bool):
        """Count one finished event (delivered or given up) on its webhook."""
        counter = 'successful_deliveries' if delivered else 'failed_deliveries'
        Webhook.objects.filter(pk=webhook.pk).update(
            total_deliveries=F('total_deliveries') + 1,
            last_triggered_at=timezone.now(),
            **{counter: F(counter) + 1}
        )

    @staticmethod
    def _describe(error):
        if isinstance(error, requests.exceptions.Timeout):
            return 'Request timeout'
        if isinstance(error, requests.exceptions.ConnectionError):
            return 'Connection error'
        return str(error)

    @staticmethod
    def _mark_delivered(event):
        event.status = 'delivered'
        event.delivered_at = timezone.now()
        event.next_retry_at = None
        event.last_error = ''
        event.save()
        WebhookService.record_outcome(event.webhook, delivered=True)
        logger.info(f"Webhook event {event.pk} delivered to {event.webhook.url} (attempt {event.attempt_count})")

    @staticmethod
    def _mark_attempt_failed(event, retry_attempt, error):
        logger.warning(f"Webhook event {event.pk} attempt {event.attempt_count} failed: {error}")
        event.last_error = error

        if retry_attempt >= WebhookService.MAX_RETRIES:
            event.status = 'failed'
            event.next_retry_at = None
            event.save()
            WebhookService.record_outcome(event.webhook, delivered=False)
            logger.error(f"Webhook event {event.pk} given up after {event.attempt_count} attempts")
            return

        delay = WebhookService.RETRY_DELAYS[retry_attempt]
        event.status = 'retrying'
        event.next_retry_at = timezone.now() + timedelta(seconds=delay)
        event.save()

        if WebhookService.runs_inline():
            # Inline tasks ignore countdown; retry_due_events makes the attempt later
            logger.info(f"Webhook event {event.pk} due for retry at {event.next_retry_at}")
            return
        retry_webhook_event.apply_async(args=[event.pk, retry_attempt + 1], countdown=delay)

    @staticmethod
    def runs_inline():
        return bool(getattr(settings, 'CELERY_TASK_ALWAYS_EAGER', False))

    @staticmethod
    def retry_due_events(now=None):
        """
        Make the next attempt of every retrying event whose retry time has come.

        Returns:
            int: number of attempts made
        """
        now = now or timezone.now()
        due = list(
            WebhookEvent.objects.select_related('webhook')
            .filter(status='retrying', next_retry_at__lte=now, webhook__is_active=True)
            .order_by('next_retry_at')
        )
        for event in due:
            # attempt_count attempts made so far, so this is retry number attempt_count
            WebhookService.deliver_event(event, retry_attempt=event.attempt_count)
        return len(due)


def _load_event(event_id):
    try:
        return WebhookEvent.objects.select_related('webhook').get(pk=event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(f"Webhook event {event_id} no longer exists")
        return None


@shared_task
def deliver_webhook_event(event_id: int):
    """First delivery attempt of a recorded event."""
    event = _load_event(event_id)
    if event is not None:
        WebhookService.deliver_event(event)


@shared_task
def retry_webhook_event(event_id: int, retry_attempt: int):
    """Scheduled retry of a failed delivery."""
    event = _load_event(event_id)
    if event is not None:
        WebhookService.deliver_event(event, retry_attempt=retry_attempt)


@shared_task
def retry_due_webhook_events():
    """Periodic sweep of retries that were not queued with a countdown."""
    attempted = WebhookService.retry_due_events()
    if attempted:
        logger.info(f"Retried {attempted} due webhook event(s)")
    return attempted
