import threading
import time

import pytest

from cloudsdk import (
    Context,
    ContextCancelledError,
    NotFoundError,
    ProbeResult,
    ServerError,
    WaitFailedError,
    WaitSpec,
    WaitTimedOutError,
    Waiter,
)


def _scripted(*results):
    """Probe returning the given results in order; counts its calls."""
    pending = list(results)
    calls = []

    def probe(ctx):
        calls.append(ctx)
        item = pending.pop(0) if len(pending) > 1 else pending[0]
        if isinstance(item, BaseException):
            raise item
        return item

    return probe, calls


def test_succeeds_after_polling(make_settings, recorded_sleeps):
    probe, calls = _scripted((False, False), (False, False), (True, False))
    Waiter(make_settings()).wait(None, probe, WaitSpec(interval=1.0, max_attempts=10))
    assert len(calls) == 3
    assert recorded_sleeps == [1.0, 1.0]


def test_first_probe_is_immediate(make_settings, recorded_sleeps):
    probe, calls = _scripted((True, False))
    Waiter(make_settings()).wait(None, probe, WaitSpec(interval=5.0, max_attempts=3))
    assert len(calls) == 1
    assert recorded_sleeps == []


def test_failure_state_ends_wait(make_settings, recorded_sleeps):
    probe, calls = _scripted((False, False), ProbeResult(False, True, "ERROR", "no valid host"))
    with pytest.raises(WaitFailedError) as excinfo:
        Waiter(make_settings()).wait(None, probe, WaitSpec(interval=0, max_attempts=10))
    assert len(calls) == 2
    assert excinfo.value.state == "ERROR"
    assert excinfo.value.reason == "no valid host"
    assert "no valid host" in str(excinfo.value)


def test_failure_is_checked_before_success(make_settings):
    probe, _ = _scripted((True, True))
    with pytest.raises(WaitFailedError):
        Waiter(make_settings()).wait(None, probe, WaitSpec(interval=0, max_attempts=1))


def test_raw_values_judged_by_predicates(make_settings, recorded_sleeps):
    probe, calls = _scripted({"status": "BUILD"}, {"status": "BUILD"}, {"status": "ACTIVE"})
    spec = WaitSpec(
        interval=0,
        max_attempts=10,
        success=lambda s: s["status"] == "ACTIVE",
        failure=lambda s: s["status"] == "ERROR",
        describe=lambda s: s["status"],
    )
    Waiter(make_settings()).wait(None, probe, spec)
    assert len(calls) == 3


def test_failure_reason_from_predicate(make_settings, recorded_sleeps):
    probe, _ = _scripted(
        {"status": "creating"},
        {"status": "error", "status_reason": "quota exceeded"},
    )
    spec = WaitSpec(
        interval=0,
        max_attempts=10,
        success=lambda v: v["status"] == "available",
        failure=lambda v: v["status"] == "error",
        describe=lambda v: v["status"],
        reason=lambda v: v.get("status_reason"),
    )
    with pytest.raises(WaitFailedError) as excinfo:
        Waiter(make_settings()).wait(None, probe, spec)
    assert excinfo.value.state == "error"
    assert excinfo.value.reason == "quota exceeded"


def test_raw_value_without_predicates_is_rejected(make_settings):
    probe, _ = _scripted("ACTIVE")
    with pytest.raises(TypeError):
        Waiter(make_settings()).wait(None, probe, WaitSpec(interval=0, max_attempts=1))


def test_permanent_probe_error_propagates(make_settings, recorded_sleeps):
    probe, calls = _scripted(NotFoundError("server not found", 404), (True, False))
    with pytest.raises(NotFoundError):
        Waiter(make_settings()).wait(None, probe, WaitSpec(interval=0, max_attempts=10))
    assert len(calls) == 1


def test_transient_probe_error_keeps_polling(make_settings, recorded_sleeps):
    probe, calls = _scripted(ServerError("unavailable", 503, retryable=True), (True, False))
    Waiter(make_settings()).wait(None, probe, WaitSpec(interval=0, max_attempts=10))
    assert len(calls) == 2


def test_max_attempts_timeout(make_settings, recorded_sleeps):
    probe, calls = _scripted(ProbeResult(False, False, "BUILD"))
    with pytest.raises(WaitTimedOutError) as excinfo:
        Waiter(make_settings()).wait(None, probe, WaitSpec(interval=0, max_attempts=4))
    err = excinfo.value
    assert len(calls) == 4
    assert err.attempts == 4
    assert err.reason == "max_attempts"
    assert err.last_state == "BUILD"


def test_max_wait_timeout(make_settings):
    probe, _ = _scripted(ProbeResult(False, False, "BUILD"))
    started = time.monotonic()
    with pytest.raises(WaitTimedOutError) as excinfo:
        Waiter(make_settings()).wait(None, probe, WaitSpec(interval=0.02, max_wait=0.2))
    assert excinfo.value.reason == "max_wait"
    assert excinfo.value.attempts >= 1
    assert time.monotonic() - started < 2.0


def test_caller_deadline_timeout(make_settings):
    probe, _ = _scripted((False, False))
    with pytest.raises(WaitTimedOutError) as excinfo:
        Waiter(make_settings()).wait(Context(timeout=0.2), probe, WaitSpec(interval=0.02, max_wait=30))
    assert excinfo.value.reason == "deadline"


def test_cancel_during_sleep_is_prompt(make_settings):
    probe, calls = _scripted((False, False))
    ctx = Context()
    timer = threading.Timer(0.1, ctx.cancel)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(ContextCancelledError):
            Waiter(make_settings()).wait(ctx, probe, WaitSpec(interval=10.0, max_wait=60))
    finally:
        timer.cancel()
    assert time.monotonic() - started < 2.0
    assert len(calls) == 1


def test_cancelled_before_start_never_probes(make_settings):
    probe, calls = _scripted((True, False))
    ctx = Context()
    ctx.cancel()
    with pytest.raises(ContextCancelledError):
        Waiter(make_settings()).wait(ctx, probe, WaitSpec(interval=0, max_attempts=3))
    assert calls == []


def test_probe_context_carries_wait_deadline(make_settings):
    probe, calls = _scripted((True, False))
    Waiter(make_settings()).wait(None, probe, WaitSpec(interval=0, max_wait=50))
    assert 0 < calls[0].remaining() <= 50


def test_default_budget_comes_from_settings(make_settings):
    probe, calls = _scripted((True, False))
    Waiter(make_settings(wait_max=7.0)).wait(None, probe)
    assert 0 < calls[0].remaining() <= 7.0


def test_interval_grows_with_backoff(make_settings, recorded_sleeps):
    probe, _ = _scripted((False, False))
    spec = WaitSpec(interval=1.0, max_attempts=5, backoff=2.0, max_interval=3.0)
    with pytest.raises(WaitTimedOutError):
        Waiter(make_settings()).wait(None, probe, spec)
    assert recorded_sleeps == [1.0, 2.0, 3.0, 3.0]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"interval": -1},
        {"max_attempts": 0},
        {"max_wait": -5},
        {"backoff": 0.5},
    ],
)
def test_wait_spec_validation(kwargs):
    with pytest.raises(ValueError):
        WaitSpec(**kwargs)
