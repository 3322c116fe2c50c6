"""Tests for SMS gateways."""

import base64
from urllib.parse import parse_qs

import httpx
import pytest

from scoopauth.core.errors import SmsDeliveryError
from scoopauth.services.sms import ConsoleSmsGateway, TwilioSmsGateway, build_sms_gateway

SID = "AC00000000000000000000000000000000"


def twilio(handler) -> TwilioSmsGateway:
    return TwilioSmsGateway(
        SID, "auth-token", "+15550000000", transport=httpx.MockTransport(handler)
    )


class TestTwilioSmsGateway:
    @pytest.mark.asyncio
    async def test_posts_message(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM123", "status": "queued"})

        await twilio(handler).send("+15551234567", "Your code is: 123456")

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == (
            f"https://api.twilio.com/2010-04-01/Accounts/{SID}/Messages.json"
        )
        form = parse_qs(request.content.decode())
        assert form == {
            "To": ["+15551234567"],
            "From": ["+15550000000"],
            "Body": ["Your code is: 123456"],
        }
        expected_auth = base64.b64encode(f"{SID}:auth-token".encode()).decode()
        assert request.headers["Authorization"] == f"Basic {expected_auth}"

    @pytest.mark.asyncio
    async def test_provider_error_raises_delivery_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        with pytest.raises(SmsDeliveryError) as exc_info:
            await twilio(handler).send("+15551234567", "hi")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_network_error_raises_delivery_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SmsDeliveryError):
            await twilio(handler).send("+15551234567", "hi")


class TestConsoleSmsGateway:
    @pytest.mark.asyncio
    async def test_records_messages(self):
        gateway = ConsoleSmsGateway()

        await gateway.send("+15551234567", "hello")

        assert list(gateway.sent) == [("+15551234567", "hello")]

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        gateway = ConsoleSmsGateway(history=2)

        for n in range(5):
            await gateway.send("+15551234567", f"message {n}")

        assert [m for _, m in gateway.sent] == ["message 3", "message 4"]


class TestBuildSmsGateway:
    def test_console_by_default(self, test_settings):
        assert isinstance(build_sms_gateway(test_settings), ConsoleSmsGateway)

    def test_twilio(self, test_settings):
        settings = test_settings.model_copy(
            update={
                "sms_provider": "twilio",
                "twilio_account_sid": SID,
                "twilio_auth_token": "auth-token",
                "twilio_phone_number": "+15550000000",
            }
        )

        gateway = build_sms_gateway(settings)

        assert isinstance(gateway, TwilioSmsGateway)
        assert gateway.from_number == "+15550000000"

    def test_twilio_without_credentials(self, test_settings):
        settings = test_settings.model_copy(update={"sms_provider": "twilio"})

        with pytest.raises(ValueError, match="TWILIO"):
            build_sms_gateway(settings)
