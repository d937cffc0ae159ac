"""Retry policy tests."""

from wifisignal.config import RetryConfig
from wifisignal.core.retry import RetryPolicy


def test_defaults():
    policy = RetryPolicy()
    assert policy.max_attempts == 3
    assert policy.allows(3)
    assert not policy.allows(4)


def test_exponential_backoff_capped():
    policy = RetryPolicy(initial_delay=1.0, max_delay=5.0)
    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_zero_attempts_never_retries():
    assert not RetryPolicy(max_attempts=0).allows(1)


def test_jitter_stays_in_bounds():
    policy = RetryPolicy(initial_delay=2.0, max_delay=2.0, jitter_frac=0.25)
    for _ in range(50):
        assert 1.5 <= policy.delay_for(1) <= 2.5


def test_from_config():
    policy = RetryPolicy.from_config(
        RetryConfig(max_attempts=5, initial_delay_secs=0.5, max_delay_secs=8.0, jitter_frac=0.1)
    )
    assert policy == RetryPolicy(max_attempts=5, initial_delay=0.5, max_delay=8.0, jitter_frac=0.1)
