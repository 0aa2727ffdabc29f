"""
Stripe Integration Package - LearnHub
=====================================

Bridges verified Stripe webhook events into the enrollment payment core.

- dj-stripe receives the webhook at /stripe/webhook/, checks the signature,
  de-duplicates and stores a `djstripe.models.Event`.
- signals.py reacts to the stored Event (`post_save`) and re-drives payment
  verification for the local Payment referenced by `metadata.payment_id`.

Card payments themselves (intents, checkout sessions, verification) live in
`elearning.payments`.

Structure
---------
- __init__.py (this file)
- apps.py         -> App configuration (`StripeIntegrationConfig`)
- signals.py      -> Webhook handlers (Event post-processing)

Author: LearnHub Development Team
Version: 1.0.0
"""
