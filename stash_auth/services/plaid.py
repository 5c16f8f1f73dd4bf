import logging
from typing import Any

import httpx

from stash_auth.core.config import Settings
from stash_auth.core.exceptions import ProviderError

logger = logging.getLogger(__name__)

IDV_GET = "/identity_verification/get"


class PlaidClient:
    """Thin async client for the Plaid identity verification API."""

    def __init__(
        self,
        settings: Settings,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = settings.PLAID_BASE_URL.rstrip("/")
        self.client_id = settings.PLAID_CLIENT_ID
        self.secret = settings.PLAID_SECRET_KEY
        self.timeout = timeout
        self.transport = transport

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = {"client_id": self.client_id, "secret": self.secret, **payload}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as cx:
                r = await cx.post(path, json=body)
        except httpx.HTTPError as exc:
            raise ProviderError("plaid", str(exc)) from exc
        if r.status_code != 200:
            raise ProviderError("plaid", f"{path} returned {r.status_code}: {r.text}")
        try:
            return r.json()
        except ValueError as exc:
            raise ProviderError("plaid", f"{path} returned a non-JSON body") from exc

    async def get_identity_verification(self, idv_id: str) -> dict[str, Any]:
        logger.debug("fetching plaid identity verification %s", idv_id)
        return await self._post(IDV_GET, {"identity_verification_id": idv_id})
