"""Tests for email delivery and the Shopify admin lookup"""

import json
import time

import aiosmtplib
import httpx
import pytest

from apps.alerts.service import Recipient, legacy_admin_recipients, send_alert_emails
from apps.shopify.client import ShopifyAdminClient
from common.exceptions import ConfigurationError, DependencyError
from conftest import FakeEmailClient
from email_services.email_client import EmailClient
from email_services.render import render_po_alert_email
from settings.config import Settings


def email_settings(**overrides):
    values = dict(
        COMPANY_NAME="Acme Exports",
        EMAIL_MIN_INTERVAL_MS=0,
        EMAIL_MAX_RETRIES=3,
        EMAIL_RETRY_DELAY_SECONDS=0,
    )
    values.update(overrides)
    return Settings(**values)


class TestEmailClient:
    @pytest.mark.asyncio
    async def test_transient_reply_is_retried(self):
        client = EmailClient(email_settings())
        attempts = []

        async def flaky(message):
            attempts.append(message)
            if len(attempts) < 3:
                raise aiosmtplib.SMTPResponseException(421, "Service not available")

        client._deliver = flaky
        await client.send_email(["a@example.test"], "Subject", "<p>hi</p>")

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_permanent_reply_is_not_retried(self):
        client = EmailClient(email_settings())
        attempts = []

        async def reject(message):
            attempts.append(message)
            raise aiosmtplib.SMTPResponseException(550, "Mailbox unavailable")

        client._deliver = reject
        with pytest.raises(aiosmtplib.SMTPResponseException):
            await client.send_email(["a@example.test"], "Subject", "<p>hi</p>")

        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self):
        client = EmailClient(email_settings(EMAIL_MAX_RETRIES=1))
        attempts = []

        async def busy(message):
            attempts.append(message)
            raise aiosmtplib.SMTPResponseException(451, "Try again later")

        client._deliver = busy
        with pytest.raises(aiosmtplib.SMTPResponseException):
            await client.send_email(["a@example.test"], "Subject", "<p>hi</p>")

        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_sends_are_spaced(self):
        client = EmailClient(email_settings(EMAIL_MIN_INTERVAL_MS=50))
        stamps = []

        async def deliver(message):
            stamps.append(time.monotonic())

        client._deliver = deliver
        await client.send_email(["a@example.test"], "One", "<p>1</p>")
        await client.send_email(["b@example.test"], "Two", "<p>2</p>")

        assert stamps[1] - stamps[0] >= 0.045

    @pytest.mark.asyncio
    async def test_empty_recipient_list_sends_nothing(self):
        client = EmailClient(email_settings())
        attempts = []

        async def deliver(message):
            attempts.append(message)

        client._deliver = deliver
        await client.send_email([], "Subject", "<p>hi</p>")

        assert attempts == []

    def test_sender_falls_back_to_company_name(self):
        client = EmailClient(email_settings())

        message = client._build_message(["a@example.test"], "Subject", "<p>hi</p>", None)

        assert message["From"] == "Acme Exports <no-reply@localhost>"
        assert message["To"] == "a@example.test"


class TestAlertEmails:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(self):
        client = FakeEmailClient(email_settings(), fail_for={"m2@merchant.test"})
        recipients = [
            Recipient(user_id="1", name="M1", email="m1@merchant.test"),
            Recipient(user_id="2", name="M2", email="m2@merchant.test"),
            Recipient(user_id="3", name="No Email"),
        ]
        snapshot = {"po_id": "abc", "buyer_name": "B1", "po_number": "PO-100", "quantity_ordered": 10}

        sent, failed = await send_alert_emails(client, recipients, "PO PO-100 received", snapshot, "PO_UPLOAD")

        assert (sent, failed) == (1, 1)
        assert client.sent[0]["to"] == ["m1@merchant.test"]
        assert client.sent[0]["subject"] == "New Alert: B1"

    def test_template_escapes_values(self):
        html = render_po_alert_email(
            "PO <b>1</b> received", {"buyer_name": "B&B"}, "PI_UPLOAD", None, "Merchant Portal"
        )

        assert "Proforma Invoice Alert" in html
        assert "PO &lt;b&gt;1&lt;/b&gt; received" in html
        assert "B&amp;B" in html
        assert "Merchant Portal" in html


def shopify_settings(**overrides):
    values = dict(SHOPIFY_STORE="acme.myshopify.com", SHOPIFY_ADMIN_TOKEN="shpat_test", SHOPIFY_API_VERSION="2025-07")
    values.update(overrides)
    return Settings(**values)


class TestShopifyAdminClient:
    @pytest.mark.asyncio
    async def test_admin_customers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["token"] = request.headers["X-Shopify-Access-Token"]
            seen["variables"] = json.loads(request.content)["variables"]
            edges = [
                {
                    "node": {
                        "id": "gid://shopify/Customer/111",
                        "email": "ann@shop.test",
                        "firstName": "Ann",
                        "lastName": "Admin",
                        "metafield": {"value": "true"},
                    }
                },
                {
                    "node": {
                        "id": "gid://shopify/Customer/222",
                        "email": "bob@shop.test",
                        "firstName": "Bob",
                        "lastName": None,
                        "metafield": {"value": "false"},
                    }
                },
            ]
            return httpx.Response(200, json={"data": {"customers": {"edges": edges}}})

        client = ShopifyAdminClient(shopify_settings(), transport=httpx.MockTransport(handler))

        admins = await client.get_admin_customers()

        assert admins == [{"id": "111", "email": "ann@shop.test", "name": "Ann Admin"}]
        assert seen["url"] == "https://acme.myshopify.com/admin/api/2025-07/graphql.json"
        assert seen["token"] == "shpat_test"
        assert seen["variables"] == {"first": 250}

    @pytest.mark.asyncio
    async def test_graphql_errors(self):
        def handler(request):
            return httpx.Response(200, json={"errors": [{"message": "Throttled"}]})

        client = ShopifyAdminClient(shopify_settings(), transport=httpx.MockTransport(handler))

        with pytest.raises(DependencyError) as exc_info:
            await client.get_admin_customers()
        assert exc_info.value.details == [{"message": "Throttled"}]

    @pytest.mark.asyncio
    async def test_http_errors(self):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        client = ShopifyAdminClient(shopify_settings(), transport=httpx.MockTransport(handler))

        with pytest.raises(DependencyError):
            await client.get_admin_customers()

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        client = ShopifyAdminClient(shopify_settings(SHOPIFY_ADMIN_TOKEN=None))

        with pytest.raises(ConfigurationError):
            await client.get_admin_customers()

    @pytest.mark.asyncio
    async def test_failed_lookup_reports_unresolved_recipients(self):
        def handler(request):
            return httpx.Response(500)

        client = ShopifyAdminClient(shopify_settings(), transport=httpx.MockTransport(handler))

        assert await legacy_admin_recipients(client) is None

    @pytest.mark.asyncio
    async def test_no_admins_is_an_empty_list(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"customers": {"edges": []}}})

        client = ShopifyAdminClient(shopify_settings(), transport=httpx.MockTransport(handler))

        assert await legacy_admin_recipients(client) == []
