from rest_framework import serializers

from .descriptors import Payer
from .models import Payment


class PayerSerializer(serializers.Serializer):
    fullName = serializers.CharField(max_length=200, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    postalCode = serializers.CharField(max_length=20, required=False, allow_blank=True)


class CreatePaymentSerializer(serializers.Serializer):
    """
    Body of the intent endpoints: {courseId, amount, currency, payer}.

    `amount`/`currency` are what the client believes it is paying; they are
    checked against the catalog price, never used as the charge.
    """

    courseId = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField(max_length=3, required=False, allow_blank=True)
    payer = PayerSerializer(required=False)

    def to_payer(self) -> Payer:
        return Payer.from_payload(self.validated_data.get("payer"))


class VerifyPaymentSerializer(serializers.Serializer):
    paymentId = serializers.IntegerField(min_value=1)
    providerSessionId = serializers.CharField(max_length=255, required=False, allow_blank=True)
    providerReference = serializers.CharField(max_length=255, required=False, allow_blank=True)

    @property
    def correlation_id(self):
        data = self.validated_data
        return data.get("providerSessionId") or data.get("providerReference") or None


class PaymentSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source="course.title", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "course",
            "course_title",
            "enrollment",
            "amount",
            "currency",
            "settlement_amount",
            "settlement_currency",
            "exchange_rate",
            "payment_method",
            "status",
            "failure_reason",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields
