from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .channel import mark_read, unread_for
from .models import NotificationEvent
from .serializers import NotificationEventSerializer


class NotificationListView(generics.ListAPIView):
    """The caller's notifications, newest first. `?unread=1` filters unread ones."""

    serializer_class = NotificationEventSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        if self.request.query_params.get("unread") in ("1", "true"):
            return unread_for(self.request.user)
        return NotificationEvent.objects.filter(recipient=self.request.user)


class UnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"unread": unread_for(request.user).count()}, status=status.HTTP_200_OK)


class MarkNotificationReadView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        event = mark_read(request.user, event_id)
        if event is None:
            return Response({"detail": "Notification not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(NotificationEventSerializer(event).data, status=status.HTTP_200_OK)
