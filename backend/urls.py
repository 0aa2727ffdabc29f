"""
LearnHub Backend URL Configuration

- /admin/: Django admin (jazzmin)
- /api/elearning/: course marketplace API (enrollments, payments, certificates)
- /stripe/: dj-stripe webhook endpoint (card-network provider callbacks)
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/elearning/", include("elearning.urls")),
    path("stripe/", include("djstripe.urls", namespace="djstripe")),
]
