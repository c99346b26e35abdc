import pytest

from callrelay.utils import RetryUtils


@pytest.mark.parametrize(
    "attempt, base_delay, expected",
    [(0, 1.0, 1.0), (1, 1.0, 2.0), (2, 1.0, 4.0), (3, 0.5, 4.0)],
)
def test_backoff_doubles(attempt, base_delay, expected):
    assert RetryUtils.calculate_backoff_delay(attempt, base_delay) == expected


def test_backoff_rejects_negative_attempt():
    with pytest.raises(ValueError):
        RetryUtils.calculate_backoff_delay(-1)


def test_should_retry_budget():
    assert [RetryUtils.should_retry(n) for n in range(5)] == [True, True, True, False, False]
    assert not RetryUtils.should_retry(0, max_attempts=0)
