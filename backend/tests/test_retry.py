import pytest

from workspace_manager.client.remote import RemoteError
from workspace_manager.config import get_settings
from workspace_manager.utils.retry import RetryPolicy
from workspace_manager.utils.retry import async_retry
from workspace_manager.utils.retry import is_retryable_http_exc


@pytest.mark.parametrize(
    "status_code,retryable",
    [(None, True), (408, True), (429, True), (500, True), (503, True), (400, False), (403, False), (404, False), (422, False)],
)
def test_retryable_statuses(status_code, retryable):
    assert is_retryable_http_exc(RemoteError("x", status_code=status_code)) is retryable


async def test_retries_until_success():
    calls = []

    @async_retry(RetryPolicy(max_attempts=4, base_delay=0.001, max_delay=0.002), retriable=is_retryable_http_exc)
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise RemoteError("unavailable", status_code=503)
        return "ok"

    assert await flaky() == "ok"
    assert len(calls) == 3


async def test_gives_up_after_max_attempts():
    calls = []

    @async_retry(RetryPolicy(max_attempts=2, base_delay=0.001, max_delay=0.002))
    async def always_down():
        calls.append(1)
        raise RemoteError("down")

    with pytest.raises(RemoteError):
        await always_down()
    assert len(calls) == 2


async def test_permanent_error_not_retried():
    calls = []

    @async_retry(RetryPolicy(max_attempts=5, base_delay=0.001), retriable=is_retryable_http_exc)
    async def rejected():
        calls.append(1)
        raise RemoteError("bad request", status_code=400)

    with pytest.raises(RemoteError):
        await rejected()
    assert len(calls) == 1


def test_policy_delay_is_capped():
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=3.0, jitter=0.0)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]


def test_policy_from_settings():
    settings = get_settings(validate=False)
    policy = RetryPolicy.from_settings(settings)
    assert policy.max_attempts == settings.sync_max_attempts
    assert policy.base_delay == settings.sync_base_delay
    assert policy.max_delay == settings.sync_max_delay
