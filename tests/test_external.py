"""
Tests for the WhatsApp and Stripe collaborators.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import stripe

from language_buddy.core.exceptions import WhatsAppAPIError
from language_buddy.services.external import BillingClient, WhatsAppClient


def _whatsapp(settings, **overrides):
    settings.whatsapp_phone_id = "123"
    settings.whatsapp_access_token = "token"
    for key, value in overrides.items():
        setattr(settings, key, value)
    return WhatsAppClient(settings)


class TestWhatsAppClient:
    async def test_unconfigured_does_not_send(self, settings):
        client = WhatsAppClient(settings)
        with patch.object(client, "_make_request", AsyncMock()) as request:
            assert await client.send_message("49", "hi") is False
        request.assert_not_awaited()

    async def test_messages_url(self, settings):
        client = _whatsapp(settings)
        assert client.messages_url == "https://graph.facebook.com/v18.0/123/messages"

    async def test_long_text_is_chunked(self, settings):
        client = _whatsapp(settings, wa_max_message_length=10)
        with patch.object(client, "_make_request", AsyncMock(return_value={})) as request:
            assert await client.send_message("49", "**eins** zwei drei") is True

        bodies = [c.args[0]["text"]["body"] for c in request.await_args_list]
        assert bodies == ["*eins*", "zwei drei"]
        assert request.await_args_list[0].args[0]["to"] == "49"

    async def test_api_error_returns_false(self, settings):
        client = _whatsapp(settings)
        failing = AsyncMock(side_effect=WhatsAppAPIError("HTTP error 500"))
        with patch.object(client, "_make_request", failing):
            assert await client.send_message("49", "hi") is False

    async def test_mark_as_read(self, settings):
        client = _whatsapp(settings)
        with patch.object(client, "_make_request", AsyncMock(return_value={})) as request:
            await client.mark_as_read("wamid.1")
        assert request.await_args.args[0] == {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": "wamid.1",
        }


class TestBillingClient:
    async def test_disabled_without_key(self, settings):
        client = BillingClient(settings)
        assert await client.check_subscription("49") is False
        assert await client.get_payment_link("49") == settings.payment_link_fallback

    async def test_active_subscription(self, settings):
        settings.stripe_secret_key = "sk_test_x"
        client = BillingClient(settings)
        customers = SimpleNamespace(data=[SimpleNamespace(id="cus_1")])
        subscriptions = SimpleNamespace(data=[SimpleNamespace(id="sub_1")])
        with patch.object(stripe.Customer, "search", Mock(return_value=customers)) as search, \
                patch.object(stripe.Subscription, "list", Mock(return_value=subscriptions)) as listing:
            assert await client.check_subscription("+49 151") is True

        search.assert_called_once_with(query="phone:'49151'", limit=1)
        listing.assert_called_once_with(customer="cus_1", status="active", limit=1)

    async def test_unknown_customer(self, settings):
        settings.stripe_secret_key = "sk_test_x"
        client = BillingClient(settings)
        with patch.object(stripe.Customer, "search", Mock(return_value=SimpleNamespace(data=[]))):
            assert await client.check_subscription("49") is False

    async def test_stripe_error_is_not_paid(self, settings):
        settings.stripe_secret_key = "sk_test_x"
        client = BillingClient(settings)
        with patch.object(stripe.Customer, "search", Mock(side_effect=stripe.StripeError("down"))):
            assert await client.check_subscription("49") is False

    async def test_payment_link_without_price_falls_back(self, settings):
        settings.stripe_secret_key = "sk_test_x"
        client = BillingClient(settings)
        assert await client.get_payment_link("49") == settings.payment_link_fallback

    async def test_checkout_session_url(self, settings):
        settings.stripe_secret_key = "sk_test_x"
        settings.stripe_price_id = "price_1"
        client = BillingClient(settings)
        session = SimpleNamespace(url="https://checkout.stripe.com/c/pay_1")
        with patch.object(stripe.checkout.Session, "create", Mock(return_value=session)) as create:
            assert await client.get_payment_link("49") == session.url
        assert create.call_args.kwargs["client_reference_id"] == "49"
