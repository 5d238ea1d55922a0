from datetime import timedelta

import pytest

from stakingindexer.retry import call_with_retry


class _Flaky:
    def __init__(self, failures: int, value):
        self.failures = failures
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"failure {self.calls}")
        return self.value


def test_first_success_does_not_sleep():
    sleeps = []
    call = _Flaky(0, "tip")
    assert call_with_retry(call, 3, 1.0, sleeps.append) == "tip"
    assert call.calls == 1
    assert sleeps == []


def test_retries_until_success():
    sleeps = []
    call = _Flaky(2, 42)
    assert call_with_retry(call, 5, 1.0, sleeps.append) == 42
    assert call.calls == 3
    assert len(sleeps) == 2
    assert all(wait >= 1.0 for wait in sleeps)
    assert sleeps[1] > sleeps[0]


def test_raises_last_error_when_attempts_exhausted():
    sleeps = []
    call = _Flaky(10, None)
    with pytest.raises(RuntimeError, match="failure 3"):
        call_with_retry(call, 3, 0.5, sleeps.append)
    assert call.calls == 3
    assert len(sleeps) == 2


def test_single_attempt_never_sleeps():
    sleeps = []
    call = _Flaky(1, None)
    with pytest.raises(RuntimeError, match="failure 1"):
        call_with_retry(call, 1, 0.5, sleeps.append)
    assert sleeps == []


def test_zero_attempts_retries_until_success():
    sleeps = []
    call = _Flaky(10, "done")
    assert call_with_retry(call, 0, 0.001, sleeps.append) == "done"
    assert call.calls == 11
    assert len(sleeps) == 10


def test_accepts_timedelta_delay():
    sleeps = []
    call = _Flaky(1, "ok")
    assert call_with_retry(call, 2, timedelta(milliseconds=500), sleeps.append) == "ok"
    assert len(sleeps) == 1
    assert sleeps[0] >= timedelta(milliseconds=500).total_seconds()


def test_waits_grow_with_each_attempt():
    sleeps = []
    call = _Flaky(4, "ok")
    call_with_retry(call, 5, 1.0, sleeps.append)
    assert sleeps == sorted(sleeps)
    assert len(set(sleeps)) == len(sleeps)


def test_negative_attempts_rejected():
    call = _Flaky(0, "ok")
    with pytest.raises(ValueError):
        call_with_retry(call, -1, 1.0, lambda _: None)
    assert call.calls == 0