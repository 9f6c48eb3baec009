"""
Payments Infrastructure Module

Stripe payment processing services.
"""

from postgen.infrastructure.payments.stripe_service import StripeService, get_stripe_service

__all__ = ["StripeService", "get_stripe_service"]
