"""Push-notification relay client.

Sends a URL to a user's device through the push relay.  The push token
is the capability the user granted when answering a request that asked
for the ``notifications`` permission.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from credex.core.config import PUSH_ENDPOINT
from credex.core.errors import (
    InvalidPushToken,
    MissingPushToken,
    MissingPushUrl,
    PushFailed,
)

logger = logging.getLogger(__name__)


class PushClient:
    """HTTP client for the push relay.

    Parameters
    ----------
    endpoint:
        The relay URL accepting ``POST {url}`` requests.
    timeout:
        Request timeout in seconds (default: 30).
    transport:
        Optional ``httpx`` transport, mainly for tests.
    """

    def __init__(
        self,
        endpoint: str = PUSH_ENDPOINT,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    @staticmethod
    def _build_headers(push_token: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {push_token}",
        }

    async def send(self, push_token: str | None, url: str | None) -> Any:
        """Deliver *url* to the device identified by *push_token*.

        Returns
        -------
        Any
            The relay's response body, parsed as JSON when possible.

        Raises
        ------
        MissingPushToken, MissingPushUrl
            Before any request is made.
        InvalidPushToken
            If the relay answers 403.
        PushFailed
            For any other non-200 status.
        httpx.HTTPError
            Transport failures, unchanged.
        """
        if not push_token:
            raise MissingPushToken()
        if not url:
            raise MissingPushUrl()

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                self._endpoint,
                json={"url": url},
                headers=self._build_headers(push_token),
            )

        logger.debug("Push relay answered %s", response.status_code)
        if response.status_code == 200:
            try:
                return response.json()
            except ValueError:
                return response.text
        if response.status_code == 403:
            raise InvalidPushToken(details={"status_code": 403})
        raise PushFailed(response.status_code, response.text)
