"""
Payment provider adapters.

- base.py: PaymentProvider capability interface
- card.py: Stripe adapter
- regional.py: Paystack adapter
- gateways.py: Application-scoped gateway factory
"""
