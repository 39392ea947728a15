"""
Billing collaborator backed by Stripe.
"""

import asyncio
from typing import Optional

import stripe

from ...config import Settings
from ...core.exceptions import BillingError
from ...utils.logging import get_logger
from ...utils.phone import sanitize_phone_number

logger = get_logger("buddy.billing")


class BillingClient:
    """Answers whether a phone has paid and where it can pay."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.enabled = bool(settings.stripe_secret_key)
        if self.enabled:
            stripe.api_key = settings.stripe_secret_key
        else:
            logger.warning("billing: STRIPE_SECRET_KEY not set, subscription checks disabled")

    def _find_customer_id(self, phone: str) -> Optional[str]:
        customers = stripe.Customer.search(query=f"phone:'{phone}'", limit=1)
        if not customers.data:
            return None
        return customers.data[0].id

    def _has_active_subscription(self, phone: str) -> bool:
        customer_id = self._find_customer_id(phone)
        if customer_id is None:
            logger.info(f"billing: no Stripe customer for {phone}")
            return False
        subscriptions = stripe.Subscription.list(customer=customer_id, status="active", limit=1)
        return bool(subscriptions.data)

    async def check_subscription(self, phone: str) -> bool:
        """True if ``phone`` belongs to a customer with an active subscription."""
        if not self.enabled:
            return False
        phone = sanitize_phone_number(phone)
        try:
            return await asyncio.to_thread(self._has_active_subscription, phone)
        except stripe.StripeError as e:
            logger.error(f"billing: subscription check failed for {phone}: {e}")
            return False

    def _create_checkout_url(self, phone: str) -> str:
        if not self.settings.stripe_price_id:
            raise BillingError("STRIPE_PRICE_ID not configured")
        session = stripe.checkout.Session.create(
            mode="subscription",
            line_items=[{"price": self.settings.stripe_price_id, "quantity": 1}],
            success_url=self.settings.stripe_success_url,
            client_reference_id=phone,
            metadata={"phone": phone},
        )
        return session.url

    async def get_payment_link(self, phone: str) -> str:
        """Checkout URL for ``phone``; the static fallback link when Stripe is unavailable."""
        if not self.enabled:
            return self.settings.payment_link_fallback
        phone = sanitize_phone_number(phone)
        try:
            return await asyncio.to_thread(self._create_checkout_url, phone)
        except (stripe.StripeError, BillingError) as e:
            logger.error(f"billing: payment link failed for {phone}: {e}")
            return self.settings.payment_link_fallback
