from rest_framework import serializers

from .models import NotificationEvent


class NotificationEventSerializer(serializers.ModelSerializer):
    is_read = serializers.BooleanField(read_only=True)

    class Meta:
        model = NotificationEvent
        fields = [
            "id",
            "topic",
            "title",
            "message",
            "payload",
            "related_id",
            "link",
            "created_at",
            "read_at",
            "is_read",
        ]
        read_only_fields = fields
