"""SMS delivery for verification codes."""

import logging
from collections import deque
from typing import Protocol

import httpx

from scoopauth.core.config import Settings
from scoopauth.core.errors import SmsDeliveryError

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SmsGateway(Protocol):
    async def send(self, phone: str, message: str) -> None:
        """Deliver ``message`` to ``phone``; raise SmsDeliveryError on failure."""
        ...


class ConsoleSmsGateway:
    """Development gateway that writes messages to the log instead of sending them."""

    def __init__(self, history: int = 100) -> None:
        self.sent: deque[tuple[str, str]] = deque(maxlen=history)

    async def send(self, phone: str, message: str) -> None:
        self.sent.append((phone, message))
        logger.info(f"SMS to {phone}: {message}")


class TwilioSmsGateway:
    """Sends messages through the Twilio Messages API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"

    async def send(self, phone: str, message: str) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.account_sid, self.auth_token),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.messages_url,
                    data={"To": phone, "From": self.from_number, "Body": message},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"SMS delivery to {phone} failed: HTTP {e.response.status_code}")
            raise SmsDeliveryError() from e
        except httpx.HTTPError as e:
            logger.error(f"SMS delivery to {phone} failed: {e}")
            raise SmsDeliveryError() from e

        logger.info(f"SMS sent to {phone}")


def build_sms_gateway(settings: Settings) -> SmsGateway:
    """Pick the gateway for the configured provider."""
    if settings.sms_provider == "twilio":
        if not (
            settings.twilio_account_sid
            and settings.twilio_auth_token
            and settings.twilio_phone_number
        ):
            raise ValueError("Twilio SMS provider requires TWILIO_* credentials")
        return TwilioSmsGateway(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_phone_number,
            timeout=settings.sms_timeout,
        )
    return ConsoleSmsGateway()
