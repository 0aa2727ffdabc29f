"""
Notification Channel

Publish/subscribe channel for domain events of the enrollment core.

`publish()` appends a `NotificationEvent` row inside the caller's transaction,
so the event exists exactly when the state change that caused it exists. The
`event_published` signal is sent only after that transaction commits; a
rolled-back transaction publishes nothing.

Subscribers connect to `event_published`:

    >>> from django.dispatch import receiver
    >>> @receiver(event_published)
    ... def push_unread_count(sender, event, **kwargs):
    ...     ...

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging
from typing import Any, Dict, Optional

from django.db import transaction
from django.dispatch import Signal
from django.utils import timezone

from .models import NotificationEvent

logger = logging.getLogger(__name__)

# Sent after commit with `event=<NotificationEvent>`.
event_published = Signal()


class Topics:
    ENROLLMENT_ACTIVATED = "enrollment.activated"
    ENROLLMENT_PENDING = "enrollment.pending"
    PAYMENT_COMPLETED = "payment.completed"
    PAYMENT_FAILED = "payment.failed"
    CERTIFICATE_REQUESTED = "certificate.requested"
    CERTIFICATE_APPROVED = "certificate.approved"
    CERTIFICATE_REJECTED = "certificate.rejected"


def publish(
    topic: str,
    recipient,
    payload: Optional[Dict[str, Any]] = None,
    *,
    title: str = "",
    message: str = "",
    related_id: Any = "",
    link: str = "",
) -> NotificationEvent:
    event = NotificationEvent.objects.create(
        topic=topic,
        recipient=recipient,
        title=title or topic,
        message=message,
        payload=payload or {},
        related_id=str(related_id or ""),
        link=link,
    )
    logger.info("Published %s to user %s (event=%s)", topic, event.recipient_id, event.pk)

    def _dispatch() -> None:
        for receiver, response in event_published.send_robust(sender=NotificationEvent, event=event):
            if isinstance(response, Exception):
                logger.error(
                    "Subscriber %r failed for event %s: %s", receiver, event.pk, response
                )

    transaction.on_commit(_dispatch)
    return event


def unread_for(user):
    return NotificationEvent.objects.filter(recipient=user, read_at__isnull=True)


def mark_read(user, event_id: int) -> Optional[NotificationEvent]:
    """Mark one of the user's events read. Returns None if it is not theirs."""
    event = NotificationEvent.objects.filter(recipient=user, pk=event_id).first()
    if event is None:
        return None
    if event.read_at is None:
        event.read_at = timezone.now()
        event.save(update_fields=["read_at"])
    return event
