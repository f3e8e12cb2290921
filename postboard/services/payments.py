"""
Payment Service.

Opens hosted checkout sessions and records them. Completion is handled by
the payment provider and is not tracked here.
"""

from __future__ import annotations

import logging

from postboard.auth.capabilities import Capability
from postboard.auth.context import AuthContext
from postboard.core.errors import ValidationError, reports_errors
from postboard.core.models import Payment
from postboard.core.utils import normalize_email
from postboard.integrations.checkout import StripeCheckout
from postboard.services.base import Service
from postboard.storage import Collections, DocumentStorage

logger = logging.getLogger(__name__)


class PaymentService(Service):

    def __init__(self, storage: DocumentStorage, checkout: StripeCheckout):
        super().__init__(storage)
        self.checkout = checkout

    @reports_errors("creating the checkout session")
    async def create_checkout_session(self, ctx: AuthContext, email: str | None = None) -> Payment:
        ctx.require(Capability.CHECKOUT_CREATE)
        email = normalize_email(email) or ctx.user_email
        if not email:
            raise ValidationError("Email is required")

        logger.info(f"Creating checkout session for user: {ctx.user_id}")
        session = self.checkout.create_session(email=email, user_id=ctx.user_id)

        payment = Payment(
            user_id=ctx.user_id,
            amount=session.amount,
            currency=session.currency,
            session_id=session.session_id,
        )
        await self.storage.save(Collections.PAYMENTS, payment.id, payment.to_doc())
        logger.info(f"Checkout session created: {session.session_id}")
        return payment
