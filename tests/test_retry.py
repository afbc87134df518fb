import pytest

from gobus_booking_platform.utils.retry import RetryConfig, retry_async


class Contended(Exception):
    pass


class Unsupported(Contended):
    pass


def failing(times, error=Contended):
    calls = []

    async def attempt(value):
        calls.append(value)
        if len(calls) <= times:
            raise error("busy")
        return value * 2

    return attempt, calls


QUICK = RetryConfig(max_attempts=3, base_delay=0.001, max_delay=0.002)


async def test_succeeds_after_transient_failures():
    attempt, calls = failing(2)

    assert await retry_async(attempt, 21, config=QUICK, retry_on=(Contended,)) == 42
    assert calls == [21, 21, 21]


async def test_budget_exhausted_reraises_last_error():
    attempt, calls = failing(10)

    with pytest.raises(Contended):
        await retry_async(attempt, 1, config=QUICK, retry_on=(Contended,))
    assert len(calls) == 3


async def test_give_up_errors_are_not_retried():
    attempt, calls = failing(10, error=Unsupported)

    with pytest.raises(Unsupported):
        await retry_async(attempt, 1, config=QUICK, retry_on=(Contended,), give_up_on=(Unsupported,))
    assert len(calls) == 1


async def test_other_errors_propagate_immediately():
    attempt, calls = failing(10, error=KeyError)

    with pytest.raises(KeyError):
        await retry_async(attempt, 1, config=QUICK, retry_on=(Contended,))
    assert len(calls) == 1


def test_delay_grows_and_is_capped():
    config = RetryConfig(base_delay=0.1, max_delay=0.3, jitter=False)

    assert [config.delay_for(n) for n in range(4)] == pytest.approx([0.1, 0.2, 0.3, 0.3])


def test_jitter_stays_within_half_to_full_delay():
    config = RetryConfig(base_delay=0.2, max_delay=1.0)

    for _ in range(50):
        assert 0.1 <= config.delay_for(0) <= 0.2
