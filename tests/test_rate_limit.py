"""Tests for the per-session rate limiter."""

from helpdesk.chat.rate_limit import RateLimiter


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _limiter(clock: _Clock, **kwargs) -> RateLimiter:
    defaults = {"max_calls": 10, "window_seconds": 60.0}
    defaults.update(kwargs)
    return RateLimiter(clock=clock, **defaults)


def test_admits_up_to_cap_then_rejects() -> None:
    limiter = _limiter(_Clock())

    results = [limiter.admit("s1") for _ in range(11)]

    assert results[:10] == [True] * 10
    assert results[10] is False


def test_rejection_does_not_increment() -> None:
    clock = _Clock()
    limiter = _limiter(clock)
    for _ in range(15):
        limiter.admit("s1")

    assert limiter._windows["s1"].count == 10


def test_fresh_window_after_expiry() -> None:
    clock = _Clock()
    limiter = _limiter(clock)
    for _ in range(11):
        limiter.admit("s1")

    clock.now += 61
    assert limiter.admit("s1") is True
    assert limiter._windows["s1"].count == 1


def test_window_boundary_is_inclusive() -> None:
    """At exactly reset_at the old window still applies."""
    clock = _Clock()
    limiter = _limiter(clock, max_calls=1)
    limiter.admit("s1")

    clock.now += 60
    assert limiter.admit("s1") is False
    clock.now += 0.001
    assert limiter.admit("s1") is True


def test_sessions_are_independent() -> None:
    limiter = _limiter(_Clock(), max_calls=2)
    limiter.admit("a")
    limiter.admit("a")

    assert limiter.admit("a") is False
    assert limiter.admit("b") is True


def test_sweep_drops_only_expired_windows() -> None:
    clock = _Clock()
    limiter = _limiter(clock)
    limiter.admit("old")
    clock.now += 30
    limiter.admit("new")
    clock.now += 31

    removed = limiter.sweep()

    assert removed == 1
    assert "old" not in limiter._windows
    assert "new" in limiter._windows


def test_sweeps_when_map_is_full() -> None:
    clock = _Clock()
    limiter = _limiter(clock, max_windows=2)
    limiter.admit("a")
    limiter.admit("b")
    clock.now += 61

    limiter.admit("c")

    assert len(limiter) == 1
    assert "c" in limiter._windows


def test_defaults_come_from_settings(monkeypatch) -> None:
    monkeypatch.setattr("helpdesk.config.settings.rate_limit_max_messages", 3)
    monkeypatch.setattr("helpdesk.config.settings.rate_limit_window_seconds", 5.0)

    limiter = RateLimiter()

    assert limiter.max_calls == 3
    assert limiter.window_seconds == 5.0
