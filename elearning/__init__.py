"""
E-Learning Package - LearnHub

This package contains the enrollment and payment reconciliation core of the
course marketplace: a student pays for a course through a card-network or a
regional provider, the server re-verifies the payment with the provider and
activates exactly one enrollment.

Features:
- Course catalog prices read server-side
- Card (Stripe) and regional (Paystack) payment intents, with live currency
  conversion for the regional provider
- Provider-confirmed payment verification, safe against races between the
  client and provider webhooks
- Enrollment lifecycle (free, physical/offline, paid) and progress
- Certificate requests issued once at 100% progress
- Notification event log

Structure:
- courses/: Course catalog model
- enrollments/: Enrollment state manager and enrollment intents
- payments/: Currency converter, provider adapters, payment records, verification
- certificates/: Certificate awarder and review
- notifications/: Notification channel
- management/: Django Management Commands

Author: LearnHub Development Team
Version: 1.0.0
"""
