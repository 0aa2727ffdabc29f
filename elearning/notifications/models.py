"""
Notification Event Log

Durable, append-only log of domain events addressed to a user. Rows are
written inside the transaction that caused them; fan-out to subscribers
happens only after commit (see `elearning.notifications.channel`).

Author: LearnHub Development Team
Version: 1.0.0
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class NotificationEvent(models.Model):
    """
    One published event for one recipient.

    Attributes:
        topic: Event topic, e.g. "enrollment.activated"
        recipient: User the event is addressed to
        title / message: Human-readable notification text
        payload: Structured event data (ids, amounts, statuses)
        related_id: Id of the entity the event is about
        link: Frontend path the notification points to
        read_at: Set when the recipient marked it read
    """

    topic = models.CharField(max_length=64, db_index=True)
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notification_events",
    )
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True, default="")
    payload = models.JSONField(default=dict, blank=True)
    related_id = models.CharField(max_length=64, blank=True, default="")
    link = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _("Notification Event")
        verbose_name_plural = _("Notification Events")
        ordering = ["-created_at", "-id"]
        db_table = "elearning_notification_event"
        indexes = [
            models.Index(fields=["recipient", "read_at"], name="notification_unread_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.topic} -> {self.recipient}"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
