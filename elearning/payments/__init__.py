"""
Payments Package - LearnHub

Card-network (Stripe) and regional (Paystack) payment flows, the durable
Payment record and the provider-authoritative verification service.

Structure:
- models.py: Payment
- descriptors.py: Value objects exchanged with providers
- currency.py: Exchange-rate client and CurrencyConverter
- records.py: PaymentRecordManager
- providers/: Provider adapters and the gateway factory
- verification.py: VerificationService
- webhooks.py: Regional provider webhook
- serializers.py / views.py: REST endpoints

Author: LearnHub Development Team
Version: 1.0.0
"""
