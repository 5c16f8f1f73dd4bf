import logging

import httpx

from stash_auth.core.config import Settings
from stash_auth.core.exceptions import ProviderError

logger = logging.getLogger(__name__)


class Notifier:
    """
    Delivers one-time codes by email (SendGrid) or SMS (Simpu).

    A channel whose credentials are not configured only logs that it was skipped.
    """

    def __init__(self, settings: Settings, timeout: float = 10.0):
        self.settings = settings
        self.timeout = timeout

    async def send_email(self, to: str, subject: str, text: str) -> None:
        s = self.settings
        if not (s.SENDGRID_API_KEY and s.SENDGRID_FROM_EMAIL):
            logger.warning("sendgrid not configured, email to %s skipped", to)
            return
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": s.SENDGRID_FROM_EMAIL, "name": s.APP_NAME},
            "subject": subject,
            "content": [{"type": "text/plain", "value": text}],
        }
        headers = {"Authorization": f"Bearer {s.SENDGRID_API_KEY}"}
        await self._post("sendgrid", s.SENDGRID_URL, payload, headers)

    async def send_sms(self, to: str, text: str) -> None:
        s = self.settings
        if not (s.SIMPU_URL and s.SIMPU_KEY):
            logger.warning("simpu not configured, sms to %s skipped", to)
            return
        payload = {"recipients": to, "content": text, "sender_id": s.APP_NAME}
        headers = {"Authorization": s.SIMPU_KEY}
        await self._post("simpu", s.SIMPU_URL, payload, headers)

    async def _post(self, provider: str, url: str, payload: dict, headers: dict) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as cx:
                r = await cx.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(provider, str(exc)) from exc
        if r.status_code >= 300:
            raise ProviderError(provider, f"returned {r.status_code}: {r.text}")

    async def send_code(self, *, email: str | None, phone: str | None, subject: str, code: str) -> None:
        """Send `code` by email when there is an address, else by SMS.

        Runs after the code is committed, so failures are logged, not raised.
        """
        text = f"Your {self.settings.APP_NAME} code is {code}. It expires in {self.settings.CODE_TTL_MINUTES} minutes."
        try:
            if email:
                await self.send_email(email, subject, text)
            elif phone:
                await self.send_sms(phone, text)
        except ProviderError:
            logger.exception("could not deliver %s to %s", subject, email or phone)
