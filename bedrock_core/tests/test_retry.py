import pytest

from bedrock_core.domain.exceptions import RetriesExhaustedError, UnknownModelError
from bedrock_core.infrastructure.retry import RetryPolicy, exponential_backoff


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def test_exponential_backoff_sequence():
    assert [exponential_backoff(n) for n in range(3)] == [1, 2, 4]


@pytest.mark.asyncio
async def test_retry_succeeds_after_two_failures():
    sleep = SleepRecorder()
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("throttled")
        return "My Title"

    policy = RetryPolicy(max_attempts=3, sleep=sleep)
    assert await policy.run(flaky, label="title") == "My Title"
    assert len(attempts) == 3
    assert sleep.delays == [1, 2]


@pytest.mark.asyncio
async def test_retry_exhausted_after_max_attempts():
    sleep = SleepRecorder()
    attempts = []

    async def always_fails():
        attempts.append(1)
        raise RuntimeError("boom")

    policy = RetryPolicy(max_attempts=3, sleep=sleep)
    with pytest.raises(RetriesExhaustedError) as exc:
        await policy.run(always_fails)
    assert len(attempts) == 3
    assert exc.value.attempts == 3
    assert isinstance(exc.value.last_error, RuntimeError)
    assert sleep.delays == [1, 2]


@pytest.mark.asyncio
async def test_non_retryable_error_propagates():
    sleep = SleepRecorder()

    async def bad():
        raise KeyError("x")

    policy = RetryPolicy(max_attempts=3, sleep=sleep, retry_on=(RuntimeError,))
    with pytest.raises(KeyError):
        await policy.run(bad)
    assert sleep.delays == []


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


@pytest.mark.asyncio
async def test_build_error_is_never_retried():
    sleep = SleepRecorder()
    attempts = []

    async def unknown_model():
        attempts.append(1)
        raise UnknownModelError("openai.gpt-4")

    policy = RetryPolicy(max_attempts=3, sleep=sleep)
    with pytest.raises(UnknownModelError):
        await policy.run(unknown_model)
    assert len(attempts) == 1
    assert sleep.delays == []
