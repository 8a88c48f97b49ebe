"""FCM (GCM) legacy HTTP transport.

Delivers messages to the cloud messaging gateway with aiohttp. Server
errors (5xx), timeouts and connection failures are retried with exponential
backoff and jitter; authentication and request errors fail immediately.
Non-success statuses are raised as ``TransportStatusError`` so the dispatch
engine can classify them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Mapping, Sequence
from typing import Final, Self

import aiohttp

from push_dispatch.core.errors import TransportStatusError
from push_dispatch.types import SendOptions

FCM_SEND_URL: Final[str] = "https://fcm.googleapis.com/fcm/send"

DEFAULT_RETRIES: Final[int] = 5
DEFAULT_BACKOFF_MS: Final[int] = 1000
DEFAULT_TIMEOUT_SECONDS: Final[float] = 10.0


class GatewayResponseError(Exception):
    """Raised when the gateway answers 200 with an unreadable body."""


class FcmTransport:
    """Push transport for the FCM legacy HTTP endpoint.

    ``request_options`` may override ``url``, ``timeout`` (seconds),
    ``headers`` and ``proxy``. Per-send ``retries`` and ``backoff``
    (milliseconds) options control the retry policy.

    Example:
        >>> async with FcmTransport(api_key="AAAA...") as transport:
        ...     response = await transport.send(
        ...         {"notification": {"title": "Hi"}},
        ...         "device-token",
        ...         {"retries": 2},
        ...     )
    """

    def __init__(
        self,
        api_key: str,
        request_options: Mapping[str, object] | None = None,
        *,
        max_backoff_seconds: float = 60.0,
        jitter_percent: float = 20.0,
    ) -> None:
        """Initialize the transport.

        Args:
            api_key: Gateway server key sent as ``Authorization: key=...``
            request_options: Request overrides (url, timeout, headers, proxy)
            max_backoff_seconds: Upper bound for a single retry delay
            jitter_percent: Jitter percentage applied to each retry delay
        """
        options = dict(request_options or {})
        self._api_key: str = api_key
        self._url: str = str(options.get("url") or FCM_SEND_URL)
        self._timeout_seconds: float = float(options.get("timeout") or DEFAULT_TIMEOUT_SECONDS)  # pyright: ignore[reportArgumentType]
        extra_headers = options.get("headers")
        self._extra_headers: dict[str, str] = (
            {str(k): str(v) for k, v in extra_headers.items()}  # pyright: ignore[reportUnknownVariableType, reportUnknownArgumentType]
            if isinstance(extra_headers, Mapping)
            else {}
        )
        proxy = options.get("proxy")
        self._proxy: str | None = str(proxy) if proxy else None
        self._max_backoff_seconds: float = max_backoff_seconds
        self._jitter_percent: float = jitter_percent
        self._session: aiohttp.ClientSession | None = None
        self._logger: logging.Logger = logging.getLogger(__name__)

    @property
    def url(self) -> str:
        return self._url

    async def __aenter__(self) -> Self:
        timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
        self._session = aiohttp.ClientSession(
            timeout=timeout,
            json_serialize=json.dumps,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"key={self._api_key}",
            "Content-Type": "application/json",
        }
        headers.update(self._extra_headers)
        return headers

    @staticmethod
    def build_body(
        message: Mapping[str, object],
        recipients: str | Sequence[str],
    ) -> dict[str, object]:
        """Add recipients to the message body.

        A single recipient (token, topic or notification key) is sent as
        ``to``; several registration tokens as ``registration_ids``.
        """
        body = dict(message)
        if isinstance(recipients, str):
            body["to"] = recipients
        else:
            body["registration_ids"] = list(recipients)
        return body

    async def post(self, payload: Mapping[str, object]) -> tuple[int, object]:
        """Send one POST request to the gateway.

        Returns:
            Status code and decoded JSON body (``None`` when not JSON)

        Raises:
            TimeoutError: If the request exceeds the timeout
            aiohttp.ClientError: For connection issues
        """
        if self._session is None:
            msg = "Transport session not initialized. Use 'async with' context manager."
            raise RuntimeError(msg)

        self._logger.debug("Posting message to %s", self._url)
        async with asyncio.timeout(self._timeout_seconds):
            async with self._session.post(
                self._url,
                json=payload,
                headers=self._headers(),
                proxy=self._proxy,
            ) as response:
                body: object
                try:
                    body = await response.json()  # pyright: ignore[reportAny]  # aiohttp returns Any
                except (aiohttp.ContentTypeError, ValueError):
                    body = None
                return response.status, body

    async def send(
        self,
        message: Mapping[str, object],
        recipients: str | Sequence[str],
        options: SendOptions,
    ) -> Mapping[str, object]:
        """Deliver a message, retrying transient failures.

        Raises:
            TransportStatusError: For non-200 statuses (after retries for 5xx)
            GatewayResponseError: If a 200 response has no JSON object body
            TimeoutError: If every attempt timed out
            aiohttp.ClientError: If every attempt failed to connect
        """
        retries = _int_option(options, "retries", DEFAULT_RETRIES)
        backoff_ms = _int_option(options, "backoff", DEFAULT_BACKOFF_MS)
        payload = self.build_body(message, recipients)

        for attempt in range(retries + 1):
            is_last = attempt >= retries
            try:
                status, body = await self.post(payload)
            except (TimeoutError, aiohttp.ClientError) as exc:
                if is_last:
                    self._logger.warning("Gateway unreachable after %d attempts: %s", attempt + 1, exc)
                    raise
                delay = self._calculate_backoff_delay(attempt, backoff_ms)
                self._logger.warning(
                    "Gateway request failed (%s), retrying in %.1fs (attempt %d/%d)",
                    type(exc).__name__,
                    delay,
                    attempt + 1,
                    retries + 1,
                )
                await asyncio.sleep(delay)
                continue

            if status == 200:
                if not isinstance(body, Mapping):
                    raise GatewayResponseError("Gateway returned an unreadable success response")
                self._logger.info("Gateway accepted message (attempt=%d)", attempt + 1)
                return body  # pyright: ignore[reportUnknownVariableType]

            if status >= 500 and not is_last:
                delay = self._calculate_backoff_delay(attempt, backoff_ms)
                self._logger.warning(
                    "Gateway server error (status=%d), retrying in %.1fs (attempt %d/%d)",
                    status,
                    delay,
                    attempt + 1,
                    retries + 1,
                )
                await asyncio.sleep(delay)
                continue

            self._logger.warning("Gateway rejected message (status=%d)", status)
            raise TransportStatusError(status, body)

        # range() always yields at least one attempt
        raise AssertionError("unreachable")

    def _calculate_backoff_delay(self, attempt: int, backoff_ms: int) -> float:
        """Exponential backoff ``backoff * 2^attempt`` with random jitter, in seconds."""
        base_delay = min(backoff_ms / 1000.0 * pow(2.0, attempt), self._max_backoff_seconds)
        jitter_factor = 1.0 + random.uniform(
            -self._jitter_percent / 100.0,
            self._jitter_percent / 100.0,
        )
        return min(base_delay * jitter_factor, self._max_backoff_seconds)


def _int_option(options: SendOptions, key: str, default: int) -> int:
    value = options.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(int(value), 0)
