"""Unit tests for the FCM transport.

Tests cover:
- Session lifecycle
- Request body and headers
- Retry logic for server errors, timeouts and connection failures
- Immediate failure for client errors
- Exponential backoff with jitter
"""

import asyncio
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from push_dispatch.core.errors import TransportStatusError
from push_dispatch.transport import FCM_SEND_URL, FcmTransport
from push_dispatch.transport.fcm import GatewayResponseError


def _response(status: int, body: object) -> AsyncMock:
    response = AsyncMock()
    response.status = status
    response.json = AsyncMock(return_value=body)
    return response


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create mock aiohttp ClientSession."""
    return AsyncMock(spec=aiohttp.ClientSession)


@pytest.fixture
def transport(mock_session: AsyncMock) -> FcmTransport:
    transport = FcmTransport(api_key="server-key", jitter_percent=0.0)
    transport._session = mock_session  # pyright: ignore[reportPrivateUsage]  # testing internal state
    return transport


def _queue_responses(mock_session: AsyncMock, *responses: AsyncMock) -> None:
    mock_session.post.return_value.__aenter__.side_effect = list(responses)  # pyright: ignore[reportAny]  # mock object


class TestSession:
    async def test_context_manager_creates_and_closes_session(self) -> None:
        transport = FcmTransport(api_key="server-key")

        async with transport:
            assert isinstance(transport._session, aiohttp.ClientSession)  # pyright: ignore[reportPrivateUsage]  # testing internal state

        assert transport._session is None  # pyright: ignore[reportPrivateUsage]  # testing internal state

    async def test_post_without_session_raises_error(self) -> None:
        with pytest.raises(RuntimeError, match="session not initialized"):
            _ = await FcmTransport(api_key="server-key").post({})

    def test_request_options_override_url(self) -> None:
        assert FcmTransport(api_key="k").url == FCM_SEND_URL
        assert FcmTransport(api_key="k", request_options={"url": "http://localhost:9000/send"}).url == (
            "http://localhost:9000/send"
        )


class TestBuildBody:
    def test_single_recipient_uses_to(self) -> None:
        assert FcmTransport.build_body({"data": {"k": "v"}}, "token") == {"data": {"k": "v"}, "to": "token"}

    def test_several_recipients_use_registration_ids(self) -> None:
        body = FcmTransport.build_body({}, ["a", "b"])

        assert body == {"registration_ids": ["a", "b"]}


class TestSend:
    async def test_success_returns_gateway_body(self, transport: FcmTransport, mock_session: AsyncMock) -> None:
        _queue_responses(mock_session, _response(200, {"success": 1, "results": [{"message_id": "m1"}]}))

        result = await transport.send({"data": {"k": "v"}}, "token", {})

        assert result == {"success": 1, "results": [{"message_id": "m1"}]}
        call = mock_session.post.call_args  # pyright: ignore[reportAny]  # mock object
        assert call.args == (FCM_SEND_URL,)
        assert call.kwargs["json"] == {"data": {"k": "v"}, "to": "token"}
        assert call.kwargs["headers"]["Authorization"] == "key=server-key"

    async def test_extra_headers_are_sent(self, mock_session: AsyncMock) -> None:
        transport = FcmTransport(api_key="k", request_options={"headers": {"X-Trace": "1"}})
        transport._session = mock_session  # pyright: ignore[reportPrivateUsage]  # testing internal state
        _queue_responses(mock_session, _response(200, {}))

        _ = await transport.send({}, "token", {})

        headers = mock_session.post.call_args.kwargs["headers"]  # pyright: ignore[reportAny]  # mock object
        assert headers["X-Trace"] == "1"
        assert headers["Content-Type"] == "application/json"

    @pytest.mark.parametrize("status", [400, 401, 404])
    async def test_client_errors_fail_without_retry(
        self,
        transport: FcmTransport,
        mock_session: AsyncMock,
        status: int,
    ) -> None:
        _queue_responses(mock_session, _response(status, None))

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(TransportStatusError) as exc_info:
                _ = await transport.send({}, "token", {"retries": 3})

        assert exc_info.value.status_code == status
        assert mock_session.post.call_count == 1  # pyright: ignore[reportAny]  # mock object
        sleep.assert_not_awaited()

    async def test_server_error_is_retried(self, transport: FcmTransport, mock_session: AsyncMock) -> None:
        _queue_responses(mock_session, _response(503, None), _response(200, {"success": 1}))

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await transport.send({}, "token", {"retries": 2, "backoff": 100})

        assert result == {"success": 1}
        assert mock_session.post.call_count == 2  # pyright: ignore[reportAny]  # mock object
        sleep.assert_awaited_once_with(pytest.approx(0.1))  # pyright: ignore[reportAny]

    async def test_server_error_raised_after_retries(self, transport: FcmTransport, mock_session: AsyncMock) -> None:
        _queue_responses(mock_session, *(_response(500, None) for _ in range(3)))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(TransportStatusError) as exc_info:
                _ = await transport.send({}, "token", {"retries": 2})

        assert exc_info.value.status_code == 500
        assert mock_session.post.call_count == 3  # pyright: ignore[reportAny]  # mock object

    async def test_zero_retries_makes_single_attempt(self, transport: FcmTransport, mock_session: AsyncMock) -> None:
        _queue_responses(mock_session, _response(502, None))

        with pytest.raises(TransportStatusError):
            _ = await transport.send({}, "token", {"retries": 0})

        assert mock_session.post.call_count == 1  # pyright: ignore[reportAny]  # mock object

    async def test_connection_error_is_retried(self, transport: FcmTransport, mock_session: AsyncMock) -> None:
        mock_session.post.return_value.__aenter__.side_effect = [  # pyright: ignore[reportAny]  # mock object
            aiohttp.ClientConnectionError("refused"),
            _response(200, {"success": 1}),
        ]

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await transport.send({}, "token", {"retries": 1})

        assert result == {"success": 1}

    async def test_timeout_raised_after_retries(self, transport: FcmTransport, mock_session: AsyncMock) -> None:
        mock_session.post.return_value.__aenter__.side_effect = asyncio.TimeoutError()  # pyright: ignore[reportAny]  # mock object

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(TimeoutError):
                _ = await transport.send({}, "token", {"retries": 1})

        assert mock_session.post.call_count == 2  # pyright: ignore[reportAny]  # mock object

    async def test_unreadable_success_body_raises(self, transport: FcmTransport, mock_session: AsyncMock) -> None:
        _queue_responses(mock_session, _response(200, None))

        with pytest.raises(GatewayResponseError):
            _ = await transport.send({}, "token", {})


class TestBackoff:
    def test_backoff_doubles_per_attempt(self) -> None:
        transport = FcmTransport(api_key="k", jitter_percent=0.0)

        delays = [transport._calculate_backoff_delay(attempt, 1000) for attempt in range(4)]  # pyright: ignore[reportPrivateUsage]  # testing internal method

        assert delays == [1.0, 2.0, 4.0, 8.0]

    def test_backoff_is_capped(self) -> None:
        transport = FcmTransport(api_key="k", max_backoff_seconds=5.0, jitter_percent=0.0)

        assert transport._calculate_backoff_delay(10, 1000) == 5.0  # pyright: ignore[reportPrivateUsage]  # testing internal method

    def test_jitter_stays_within_bounds(self) -> None:
        transport = FcmTransport(api_key="k", jitter_percent=20.0)

        for _ in range(50):
            delay = transport._calculate_backoff_delay(0, 1000)  # pyright: ignore[reportPrivateUsage]  # testing internal method
            assert 0.8 <= delay <= 1.2
