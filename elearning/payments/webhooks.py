"""
Regional Provider Webhook
=========================

Paystack posts transaction events to `/api/elearning/payments/webhooks/regional/`
signed with `x-paystack-signature` (HMAC-SHA512 of the raw body, keyed with
the secret key).

On `charge.success` the referenced payment is re-verified through the
VerificationService, which queries Paystack again instead of trusting the
webhook body. Processing errors are logged and never re-raised: the endpoint
answers 200 for every authentic event so Paystack does not retry forever.

Author: LearnHub Development Team
Version: 1.0.0
"""

import json
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from ..exceptions import EnrollmentFlowError
from .providers.gateways import get_payment_gateways
from .providers.regional import PaystackProvider
from .verification import VerificationService

logger = logging.getLogger(__name__)

HANDLED_EVENTS = {"charge.success"}


class RegionalWebhookView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        # The signature covers the exact bytes received.
        raw_body = request.body
        signature = request.headers.get("x-paystack-signature", "")

        provider = get_payment_gateways().regional
        if not provider.is_valid_signature(raw_body, signature):
            logger.warning("Rejected regional webhook with invalid signature")
            return Response({"detail": "Invalid signature."}, status=status.HTTP_401_UNAUTHORIZED)

        try:
            event = json.loads(raw_body.decode("utf-8") or "{}")
        except (ValueError, UnicodeDecodeError):
            logger.warning("Regional webhook body is not valid JSON")
            return Response({"detail": "Invalid payload."}, status=status.HTTP_400_BAD_REQUEST)

        event_type = event.get("event", "")
        data = event.get("data") or {}
        reference = data.get("reference", "")
        logger.info("[webhook] regional %s (reference=%s)", event_type, reference)

        if event_type not in HANDLED_EVENTS:
            logger.debug("Unhandled regional event type: %s", event_type)
            return Response({"received": True}, status=status.HTTP_200_OK)

        payment_id = PaystackProvider.payment_id_from_reference(reference)
        if payment_id is None:
            logger.warning("Regional webhook reference %r is not one of ours", reference)
            return Response({"received": True}, status=status.HTTP_200_OK)

        try:
            result = VerificationService().verify_from_provider_event(payment_id, reference)
            logger.info("Regional webhook verified payment %s: %s", payment_id, result.outcome.value)
        except EnrollmentFlowError as exc:
            logger.error("Regional webhook for payment %s not processed: %s", payment_id, exc.message)
        except Exception:
            logger.exception("Error handling regional webhook for payment %s", payment_id)

        return Response({"received": True}, status=status.HTTP_200_OK)
