"""
Test retry and timeout behavior shared by every external call.
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from ordersync.errors import ExternalServiceError, NetworkError, RetryExhaustedError
from ordersync.utils.retry import async_retry, with_timeout


@pytest.mark.asyncio
async def test_retries_then_succeeds():
    calls = []

    @async_retry(max_retries=2, backoff_factor=2.0)
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise NetworkError("connection reset")
        return "ok"

    with patch("ordersync.utils.retry.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        assert await flaky() == "ok"

    assert len(calls) == 3
    assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhaustion_raises_and_reports():
    @async_retry(max_retries=1, backoff_factor=1.0)
    async def always_down():
        raise NetworkError("unreachable")

    with patch("ordersync.utils.retry.asyncio.sleep", new=AsyncMock()), \
         patch("ordersync.utils.retry.capture_retry_exhaustion") as mock_capture:
        with pytest.raises(RetryExhaustedError):
            await always_down()

    mock_capture.assert_called_once()
    assert mock_capture.call_args[0][:2] == ("always_down", 2)


@pytest.mark.asyncio
async def test_exhaustion_is_an_external_service_error():
    @async_retry(max_retries=0)
    async def once():
        raise NetworkError("down")

    with pytest.raises(ExternalServiceError):
        await once()


@pytest.mark.asyncio
async def test_non_retryable_errors_propagate_immediately():
    calls = []

    @async_retry(max_retries=3)
    async def bad_request():
        calls.append(1)
        raise ExternalServiceError("400 bad request")

    with pytest.raises(ExternalServiceError) as exc_info:
        await bad_request()

    assert not isinstance(exc_info.value, RetryExhaustedError)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_with_timeout_raises_network_error():
    with pytest.raises(NetworkError):
        await with_timeout(asyncio.sleep(1), "slow call", timeout=0.01)


@pytest.mark.asyncio
async def test_with_timeout_returns_result():
    async def quick():
        return 42

    assert await with_timeout(quick(), "quick call", timeout=1) == 42


if __name__ == "__main__":
    asyncio.run(test_retries_then_succeeds())
    asyncio.run(test_with_timeout_raises_network_error())
    print("\nAll retry tests passed!")
