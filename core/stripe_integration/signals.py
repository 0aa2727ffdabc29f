"""
Stripe Webhook Signal Handlers
==============================

Processes Stripe events that dj-stripe has already validated and stored. We
react to persisted `djstripe.models.Event` rows through Django's `post_save`
signal, which is stable across dj-stripe versions.

Handled event types:
- `payment_intent.succeeded`        -> re-verify the payment
- `payment_intent.canceled`         -> re-verify (a canceled intent fails the payment)
- `checkout.session.completed`      -> re-verify using the session id
- `checkout.session.expired`        -> re-verify (expired session fails the payment)

The local payment is found through `metadata.payment_id`, which the backend
sets when it creates the intent/session. The event body itself is never
trusted as proof of payment: verification queries Stripe again.

Safety:
- Never re-raise from the signal handler (prevents webhook retry storms).
- Verification is idempotent; duplicate or out-of-order events are harmless.

Author: LearnHub Development Team
Version: 1.0.0
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.db.models.signals import post_save
from django.dispatch import receiver
from djstripe.models import Event

from elearning.exceptions import EnrollmentFlowError
from elearning.payments.verification import VerificationService

logger = logging.getLogger(__name__)

HANDLED_EVENTS = {
    "payment_intent.succeeded",
    "payment_intent.canceled",
    "checkout.session.completed",
    "checkout.session.expired",
}


def _extract_data_object(event: Event) -> Dict[str, Any]:
    """
    Extract the Stripe event's `data.object` payload from a dj-stripe Event.

    dj-stripe stores the raw Stripe JSON in `event.data`; depending on the
    dj-stripe version it is either the full event or only its `data` part.

    Returns:
        A dict representing the `data.object` (or `{}` if not found).
    """
    data = event.data or {}
    if not isinstance(data, dict):
        return {}
    # Standard Stripe event shape: {"data": {"object": {...}}}
    inner = data.get("data")
    if isinstance(inner, dict) and isinstance(inner.get("object"), dict):
        return inner["object"]
    # Fallback: `object` is top-level
    if isinstance(data.get("object"), dict):
        return data["object"]
    return {}


def _payment_id(obj: Dict[str, Any]) -> Optional[str]:
    metadata = obj.get("metadata") or {}
    return metadata.get("payment_id") or obj.get("client_reference_id")


def handle_stripe_event(event_type: str, obj: Dict[str, Any], verifier: Optional[VerificationService] = None) -> None:
    """Re-drive verification for the payment an event refers to."""
    if event_type not in HANDLED_EVENTS:
        logger.debug("Unhandled event type: %s", event_type)
        return

    payment_id = _payment_id(obj)
    if not payment_id:
        logger.warning("%s without metadata.payment_id (object=%s). Skipping.", event_type, obj.get("id"))
        return

    verifier = verifier or VerificationService()
    result = verifier.verify_from_provider_event(payment_id, obj.get("id"))
    logger.info("%s -> payment %s %s", event_type, payment_id, result.outcome.value)


@receiver(post_save, sender=Event, dispatch_uid="stripe_integration_event_saved")
def on_djstripe_event_created(sender, instance: Event, created: bool, **kwargs):
    """
    Runs as soon as dj-stripe saves a new Event (after signature verification & de-dup).
    """
    if not created:
        return

    event_type = instance.type
    logger.info("[webhook] %s (event_id=%s)", event_type, instance.id)

    try:
        handle_stripe_event(event_type, _extract_data_object(instance))
    except EnrollmentFlowError as exc:
        logger.error("Event %s not applied: %s (%s)", instance.id, exc.message, exc.error_code)
    except Exception as exc:
        # Never re-raise: Stripe may retry. We just log.
        logger.exception("Error handling event %s: %s", event_type, exc)
