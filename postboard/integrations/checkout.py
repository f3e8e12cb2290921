# =============================================================================
# Hosted Checkout (Stripe)
# =============================================================================
#
# Setup:
#   Set env vars:
#     - STRIPE_SECRET_KEY=sk_...
#     - STRIPE_SUCCESS_URL / STRIPE_CANCEL_URL (where Stripe sends the buyer)
#     - CHECKOUT_PRICE_CENTS / CHECKOUT_CURRENCY / CHECKOUT_PRODUCT_NAME
#
# Only session creation lives here. Completion webhooks are not handled.
#
# =============================================================================

from __future__ import annotations

import logging

import stripe
from pydantic import BaseModel

from postboard.config import Settings, get_settings
from postboard.core.errors import DependencyError

logger = logging.getLogger(__name__)


class CheckoutSession(BaseModel):
    """What we keep from a created checkout session."""
    session_id: str
    amount: int
    currency: str


class StripeCheckout:
    """Creates single-item, fixed-price Stripe Checkout sessions."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.stripe_secret_key)

    def create_session(self, email: str, user_id: str) -> CheckoutSession:
        """
        Open a checkout session for the configured product.

        Raises:
            DependencyError: Stripe is not configured or refused the request
        """
        if not self.is_configured:
            raise DependencyError("Payment provider is not configured")

        stripe.api_key = self.settings.stripe_secret_key
        amount = self.settings.checkout_price_cents
        currency = self.settings.checkout_currency.lower()

        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                payment_method_types=["card"],
                customer_email=email,
                client_reference_id=user_id,
                line_items=[
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": currency,
                            "unit_amount": amount,
                            "product_data": {"name": self.settings.checkout_product_name},
                        },
                    }
                ],
                success_url=self.settings.stripe_success_url,
                cancel_url=self.settings.stripe_cancel_url,
                metadata={"user_id": user_id},
            )
        except stripe.error.StripeError as e:
            logger.error(f"Stripe checkout session failed for {user_id}: {e}")
            raise DependencyError("Error occurred while creating the checkout session") from e

        return CheckoutSession(session_id=session["id"], amount=amount, currency=currency)
