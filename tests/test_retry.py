import pytest
from unittest.mock import AsyncMock, patch

from core.errors import AuthenticationError, TransientError
from utils.retry import retry_on_transient

@pytest.mark.asyncio
async def test_returns_first_success():
    func = AsyncMock(return_value="token")

    assert await retry_on_transient(func, max_retries=3) == "token"
    func.assert_awaited_once()

@pytest.mark.asyncio
async def test_retries_transient_errors_with_linear_backoff():
    func = AsyncMock(side_effect=[TransientError("1"), TransientError("2"), "token"])

    with patch("utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        assert await retry_on_transient(func, max_retries=2, delay=1.5) == "token"

    assert func.await_count == 3
    assert [call.args[0] for call in mock_sleep.await_args_list] == [1.5, 3.0]

@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    func = AsyncMock(side_effect=TransientError("down"))

    with patch("utils.retry.asyncio.sleep", new_callable=AsyncMock):
        with pytest.raises(TransientError):
            await retry_on_transient(func, max_retries=1)

    assert func.await_count == 2

@pytest.mark.asyncio
async def test_no_retry_by_default():
    func = AsyncMock(side_effect=TransientError("down"))

    with pytest.raises(TransientError):
        await retry_on_transient(func)

    func.assert_awaited_once()

@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    func = AsyncMock(side_effect=AuthenticationError("rejected"))

    with pytest.raises(AuthenticationError):
        await retry_on_transient(func, max_retries=5)

    func.assert_awaited_once()

@pytest.mark.asyncio
async def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        await retry_on_transient(AsyncMock(), max_retries=-1)
