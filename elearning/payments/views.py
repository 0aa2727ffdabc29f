"""
Payments Views
==============

API endpoints of the paid-enrollment flow. Both providers share the same
shape: the client asks for an intent, pays at the provider, then asks the
server to verify. The server re-queries the provider; client-reported success
is never trusted.

Endpoints:
----------

1. PaymentConfigView
   - URL: /api/elearning/payments/config/
   - Method: GET
   - Auth: Public (AllowAny)
   - Returns: {"cardProviderPublicKey": "pk_...", "regionalProviderPublicKey": "pk_..."}

2. CreateCardPaymentIntentView
   - URL: /api/elearning/payments/card/intent/
   - Method: POST
   - Auth: Required
   - Body: {"courseId": 3, "amount": "100.00", "currency": "USD", "payer": {...}}
   - Returns: {"clientSecret": "pi_..._secret_...", "paymentId": 12}

3. CreateCardCheckoutSessionView
   - URL: /api/elearning/payments/card/checkout-session/
   - Method: POST
   - Auth: Required
   - Body: same as (2)
   - Returns: {"url": "https://checkout.stripe.com/...", "sessionId": "cs_...", "paymentId": 12}

4. CreateRegionalPaymentView
   - URL: /api/elearning/payments/regional/
   - Method: POST
   - Auth: Required
   - Body: same as (2)
   - Returns: {"reference": "PAY-12", "paymentId": 12, "authorizationUrl": "...",
     "accessCode": "...", "convertedAmount": 160000.0, "exchangeRate": 1600.0,
     "convertedCurrency": "NGN"}

5. VerifyPaymentView
   - URL: /api/elearning/payments/verify/
   - Method: POST
   - Auth: Required (ownership is derived from the payment, not the body)
   - Body: {"paymentId": 12, "providerSessionId": "cs_...", "providerReference": "PAY-12"}
   - Returns: {"verified": true, "status": "verified", "paymentId": 12,
     "enrollmentId": 7, "retryable": false}
     `verified: false` with `retryable: true` means "not yet, poll again".

6. MyPaymentsView
   - URL: /api/elearning/payments/mine/
   - Method: GET
   - Auth: Required

Errors are returned as {"error", "error_code", "details", "retryable"} with the
status code of the raised EnrollmentFlowError.

Author: LearnHub Development Team
Version: 1.0.0
"""

from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ..mixins import FlowErrorMixin
from .models import Payment
from .providers.gateways import get_payment_gateways
from .serializers import CreatePaymentSerializer, PaymentSerializer, VerifyPaymentSerializer
from .verification import VerificationService


class PaymentConfigView(FlowErrorMixin, APIView):
    """Publishable keys so the frontend can initialize the provider SDKs."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response(get_payment_gateways().public_config(), status=status.HTTP_200_OK)


class _CreatePaymentView(FlowErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def _descriptor(self, request, create):
        serializer = CreatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return create(
            request.user,
            data["courseId"],
            amount=data["amount"],
            currency=data.get("currency") or None,
            payer=serializer.to_payer(),
        )


class CreateCardPaymentIntentView(_CreatePaymentView):
    def post(self, request):
        descriptor = self._descriptor(request, get_payment_gateways().card.create_intent)
        return Response(
            {"clientSecret": descriptor.client_token, "paymentId": descriptor.payment_id},
            status=status.HTTP_200_OK,
        )


class CreateCardCheckoutSessionView(_CreatePaymentView):
    def post(self, request):
        descriptor = self._descriptor(request, get_payment_gateways().card.create_checkout_session)
        return Response(
            {
                "url": descriptor.authorization_url,
                "sessionId": descriptor.reference,
                "paymentId": descriptor.payment_id,
            },
            status=status.HTTP_200_OK,
        )


class CreateRegionalPaymentView(_CreatePaymentView):
    def post(self, request):
        descriptor = self._descriptor(request, get_payment_gateways().regional.create_intent)
        body = {
            "reference": descriptor.reference,
            "paymentId": descriptor.payment_id,
            "authorizationUrl": descriptor.authorization_url,
            "accessCode": descriptor.client_token,
        }
        quote = descriptor.quote
        if quote is not None and quote.converted:
            body.update(
                {
                    "convertedAmount": quote.settlement_amount,
                    "exchangeRate": quote.exchange_rate,
                    "convertedCurrency": quote.settlement_currency,
                }
            )
        return Response(body, status=status.HTTP_200_OK)


class VerifyPaymentView(FlowErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = VerificationService().verify(
            request.user,
            serializer.validated_data["paymentId"],
            serializer.correlation_id,
        )
        return Response(result.to_dict(), status=status.HTTP_200_OK)


class MyPaymentsView(generics.ListAPIView):
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Payment.objects.filter(student=self.request.user).select_related("course")
