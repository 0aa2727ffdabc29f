from rest_framework import serializers

from .models import CertificateRequest


class CertificateRequestSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source="course.title", read_only=True)

    class Meta:
        model = CertificateRequest
        fields = [
            "id",
            "course",
            "course_title",
            "enrollment",
            "status",
            "requested_at",
            "approved_at",
            "rejection_reason",
        ]
        read_only_fields = fields


class RejectCertificateSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
