"""
SMS delivery through the Twilio REST API.
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from app.core.config import Settings

log = structlog.get_logger()

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SMSResult:
    def __init__(self, ok: bool, sid: Optional[str] = None, error: Optional[str] = None):
        self.ok = ok
        self.sid = sid
        self.error = error


class TwilioSMSSender:
    """Send messages with the account's From number."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self._transport = transport

    async def send(self, to_phone: str, body: str) -> SMSResult:
        if not to_phone.startswith("+"):
            log.warning("sms.invalid_number", to=to_phone)
            return SMSResult(False, error="Phone number must be in E.164 format")

        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        data = {"To": to_phone, "Body": body, "From": self.from_number}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url, data=data, auth=(self.account_sid, self.auth_token)
                )
        except httpx.HTTPError as exc:
            log.error("sms.request_failed", to=to_phone, error=str(exc))
            return SMSResult(False, error=str(exc))

        if response.status_code in (200, 201):
            sid = response.json().get("sid")
            log.info("sms.sent", to=to_phone, sid=sid)
            return SMSResult(True, sid=sid)

        try:
            error = response.json().get("message", response.text)
        except ValueError:
            error = response.text
        log.error("sms.rejected", to=to_phone, status=response.status_code, error=error)
        return SMSResult(False, error=error)


def create_sms_sender(settings: Settings) -> Optional[TwilioSMSSender]:
    """A Twilio sender, or None when credentials are not configured."""
    if settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_phone_number:
        return TwilioSMSSender(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_phone_number,
        )
    return None
