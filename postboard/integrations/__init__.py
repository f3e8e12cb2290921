"""External providers: email (SES), checkout (Stripe), error tracking (Sentry)."""

from postboard.integrations.checkout import CheckoutSession, StripeCheckout
from postboard.integrations.email import EmailService
from postboard.integrations.sentry import capture_exception, init_sentry, set_user

__all__ = [
    "CheckoutSession",
    "EmailService",
    "StripeCheckout",
    "capture_exception",
    "init_sentry",
    "set_user",
]
