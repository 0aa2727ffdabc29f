"""
Course Catalog Models

The course catalog is maintained by the content-management side of the
platform. The enrollment/payment core only reads it: the price of a course is
always taken from here, never from a client request.

Models:
- Course: A purchasable (or free) course with its catalog price

Author: LearnHub Development Team
Version: 1.0.0
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


def default_catalog_currency() -> str:
    return getattr(settings, "CATALOG_CURRENCY", "USD")


class Course(models.Model):
    """
    Catalog course.

    Attributes:
        title: Display title
        price: Catalog price; null or zero means the course is free
        currency: ISO-4217 code of the catalog price (USD by default)

    Example:
        >>> course = Course.objects.create(title="Data Science 101", price=Decimal("100.00"))
        >>> course.is_free
        False
    """

    title = models.CharField(
        max_length=200,
        verbose_name=_("Course Title"),
    )

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
        verbose_name=_("Price"),
        help_text=_("Leave empty or zero for a free course"),
    )

    currency = models.CharField(
        max_length=3,
        default=default_catalog_currency,
        verbose_name=_("Currency"),
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Course")
        verbose_name_plural = _("Courses")
        ordering = ["title"]
        db_table = "elearning_course"

    def __str__(self) -> str:
        return self.title

    @property
    def is_free(self) -> bool:
        """A course without a positive price is enrolled into directly."""
        return self.price is None or self.price <= 0
