"""Tests for the access gate: rate limiter, IP filter, gate pipeline, sweeper."""

import pytest

from shared.config import AccessGateConfig
from shared.models import AccessOutcome


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestRateLimiter:
    """Tests for the fixed-window rate limiter."""

    def setup_method(self):
        from access_gate.rate_limiter import RateLimiter

        self.clock = FakeClock()
        self.limiter = RateLimiter(max_requests=3, window_seconds=60, clock=self.clock)

    def test_first_request_opens_window(self):
        result = self.limiter.check("1.2.3.4")

        assert result.allowed
        assert result.count == 1
        assert result.remaining == 2
        assert result.reset_at == self.clock.now + 60

        record = self.limiter.get("1.2.3.4")
        assert record.count == 1
        assert record.window_start == self.clock.now

    def test_denies_after_limit_and_keeps_counting(self):
        """Denied requests still increment the counter."""
        results = [self.limiter.check("1.2.3.4") for _ in range(5)]

        assert [r.allowed for r in results] == [True, True, True, False, False]
        assert results[-1].count == 5
        assert results[-1].remaining == 0

    def test_identities_are_independent(self):
        for _ in range(3):
            self.limiter.check("a")

        assert not self.limiter.check("a").allowed
        assert self.limiter.check("b").allowed

    def test_window_boundary_is_exclusive(self):
        """A new window only starts once strictly more than the window has elapsed."""
        self.limiter.check("a")
        window_start = self.clock.now

        self.clock.advance(60)
        result = self.limiter.check("a")
        assert result.count == 2
        assert result.reset_at == window_start + 60

        self.clock.advance(0.001)
        result = self.limiter.check("a")
        assert result.count == 1
        assert result.reset_at == self.clock.now + 60

    def test_burst_across_boundary(self):
        """Up to twice the limit can pass around a window boundary."""
        self.limiter.check("a")
        self.clock.advance(59)
        assert all(self.limiter.check("a").allowed for _ in range(2))

        self.clock.advance(2)
        assert all(self.limiter.check("a").allowed for _ in range(3))

    def test_sweep_removes_only_stale_records(self):
        self.limiter.check("old")
        self.clock.advance(30)
        self.limiter.check("recent")
        self.clock.advance(31)

        removed = self.limiter.sweep()

        assert removed == 1
        assert "old" not in self.limiter
        assert "recent" in self.limiter

    def test_sweep_with_explicit_time(self):
        self.limiter.check("a")

        assert self.limiter.sweep(now=self.clock.now + 60) == 0
        assert self.limiter.sweep(now=self.clock.now + 61) == 1
        assert len(self.limiter) == 0

    def test_reset(self):
        self.limiter.check("a")
        self.limiter.reset()

        assert len(self.limiter) == 0
        assert self.limiter.check("a").count == 1

    def test_invalid_configuration(self):
        from access_gate.rate_limiter import RateLimiter

        with pytest.raises(ValueError):
            RateLimiter(max_requests=0)
        with pytest.raises(ValueError):
            RateLimiter(window_seconds=0)


class TestIPFilter:
    """Tests for allow-list matching and identity resolution."""

    def test_empty_allow_list_allows_everything(self):
        from access_gate.ip_filter import is_ip_allowed

        assert is_ip_allowed("203.0.113.9", [])

    def test_exact_and_wildcard(self):
        from access_gate.ip_filter import is_ip_allowed

        assert is_ip_allowed("10.0.0.1", ["10.0.0.1"])
        assert not is_ip_allowed("10.0.0.2", ["10.0.0.1"])
        assert is_ip_allowed("10.0.0.2", ["10.0.0.1", "*"])

    def test_mixed_exact_and_prefix_list(self):
        from access_gate.ip_filter import is_ip_allowed

        allowed = ["127.0.0.1", "10.0.0.0/8"]

        assert is_ip_allowed("127.0.0.1", allowed)
        assert is_ip_allowed("10.5.1.1", allowed)
        assert not is_ip_allowed("192.168.1.1", allowed)

    def test_prefix_entries(self):
        from access_gate.ip_filter import matches_entry

        assert matches_entry("192.168.1.77", "192.168.1.0/24")
        assert not matches_entry("192.168.2.77", "192.168.1.0/24")
        assert matches_entry("10.200.3.4", "10.0.0.0/8")
        assert matches_entry("172.16.9.1", "172.16.0.0/16")

    def test_prefix_match_is_textual(self):
        """Non byte-aligned prefixes round up to whole octets."""
        from access_gate.ip_filter import matches_entry

        assert matches_entry("10.1.0.9", "10.1.0.0/20")
        assert not matches_entry("10.1.15.9", "10.1.0.0/20")
        # Plain string prefix: "192.168.1" also prefixes "192.168.10"
        assert matches_entry("192.168.10.5", "192.168.1.0/24")

    def test_malformed_prefix_never_matches(self):
        from access_gate.ip_filter import matches_entry

        assert not matches_entry("10.0.0.1", "10.0.0.0/abc")

    def test_resolve_identity(self):
        from access_gate.ip_filter import resolve_client_identity

        assert resolve_client_identity("1.1.1.1", "2.2.2.2, 3.3.3.3") == "1.1.1.1"
        assert resolve_client_identity(None, "2.2.2.2, 3.3.3.3") == "2.2.2.2"
        assert resolve_client_identity("1.1.1.1", "2.2.2.2", trust_forwarded_for=True) == "2.2.2.2"
        assert resolve_client_identity(None, None) == "unknown"
        assert resolve_client_identity(None, " ") == "unknown"


class TestAccessGate:
    """Tests for the ordered gate pipeline."""

    def _gate(self, **overrides):
        from access_gate.gate import AccessGate
        from access_gate.rate_limiter import RateLimiter

        config = AccessGateConfig(**{"max_requests_per_window": 2, "window_seconds": 60, **overrides})
        limiter = RateLimiter(
            max_requests=config.max_requests_per_window,
            window_seconds=config.window_seconds,
            clock=FakeClock(),
        )
        return AccessGate(config, rate_limiter=limiter), limiter

    def test_keeps_injected_empty_limiter(self):
        gate, limiter = self._gate()

        assert len(limiter) == 0
        assert gate.rate_limiter is limiter

        gate.evaluate("1.2.3.4", None, "/tools")

        assert "1.2.3.4" in limiter

    def test_builds_limiter_from_config(self):
        from access_gate.gate import AccessGate

        gate = AccessGate(AccessGateConfig(max_requests_per_window=7, window_seconds=30))

        assert gate.rate_limiter.max_requests == 7
        assert gate.rate_limiter.window_seconds == 30

    def test_allowed_request_reports_rate_fields(self):
        gate, _ = self._gate()

        decision = gate.evaluate("1.2.3.4", None, "/tools")

        assert decision.allowed
        assert not decision.bypassed
        assert decision.limit == 2
        assert decision.count == 1
        assert decision.remaining == 1
        assert decision.reset_at_iso.endswith("+00:00")

    def test_public_path_bypass_consumes_no_slot(self):
        gate, limiter = self._gate(require_authentication=False, allowed_ips=("10.0.0.1",))

        decision = gate.evaluate("203.0.113.9", None, "/health")

        assert decision.allowed
        assert decision.bypassed
        assert decision.limit is None
        assert "203.0.113.9" not in limiter

    def test_public_path_is_gated_when_authentication_required(self):
        gate, limiter = self._gate(shared_secret="s3cret")

        decision = gate.evaluate("1.2.3.4", None, "/health")

        assert decision.outcome == AccessOutcome.DENIED_AUTH
        assert "1.2.3.4" in limiter

    def test_non_public_path_not_bypassed(self):
        gate, _ = self._gate(require_authentication=False, shared_secret="s3cret")

        decision = gate.evaluate("1.2.3.4", None, "/tools")

        assert decision.outcome == AccessOutcome.DENIED_AUTH

    def test_ip_denied_before_rate_limit(self):
        """IP-denied requests do not consume a rate-limit slot."""
        gate, limiter = self._gate(allowed_ips=("10.0.0.1",))

        decision = gate.evaluate("10.0.0.2", None, "/tools")

        assert decision.outcome == AccessOutcome.DENIED_IP
        assert "10.0.0.2" not in limiter

    def test_rate_limit_checked_before_secret(self):
        gate, _ = self._gate(shared_secret="s3cret")

        gate.evaluate("1.2.3.4", "s3cret", "/tools")
        gate.evaluate("1.2.3.4", "wrong", "/tools")
        decision = gate.evaluate("1.2.3.4", "s3cret", "/tools")

        assert decision.outcome == AccessOutcome.DENIED_RATE_LIMIT
        assert decision.count == 3
        assert decision.remaining == 0

    def test_secret_failures_consume_slots(self):
        gate, limiter = self._gate(shared_secret="s3cret")

        decision = gate.evaluate("1.2.3.4", "wrong", "/tools")

        assert decision.outcome == AccessOutcome.DENIED_AUTH
        assert decision.count == 1
        assert limiter.get("1.2.3.4").count == 1

    def test_secret_must_match_exactly(self):
        gate, _ = self._gate(max_requests_per_window=10, shared_secret="s3cret")

        assert gate.evaluate("a", "s3cret", "/tools").allowed
        assert not gate.evaluate("a", "s3cret ", "/tools").allowed
        assert not gate.evaluate("a", "", "/tools").allowed
        assert not gate.evaluate("a", None, "/tools").allowed

    def test_no_secret_configured(self):
        gate, _ = self._gate()

        assert gate.evaluate("a", None, "/tools").allowed

    def test_security_summary(self):
        gate, _ = self._gate(shared_secret="s3cret", allowed_ips=("10.0.0.1",))

        summary = gate.security_summary()

        assert summary == {
            "apiKeyRequired": True,
            "ipWhitelistEnabled": True,
            "rateLimitEnabled": True,
            "rateLimitMax": 2,
            "requireAuthentication": True,
        }


class TestRateLimitSweeper:
    """Tests for the background sweeper."""

    def test_run_once(self):
        from access_gate.rate_limiter import RateLimiter
        from access_gate.sweeper import RateLimitSweeper

        clock = FakeClock()
        limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
        limiter.check("a")
        sweeper = RateLimitSweeper(limiter, interval_seconds=900)

        assert sweeper.run_once() == 0
        assert sweeper.run_once(now=clock.now + 61) == 1
        assert len(limiter) == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        from access_gate.rate_limiter import RateLimiter
        from access_gate.sweeper import RateLimitSweeper

        sweeper = RateLimitSweeper(RateLimiter(), interval_seconds=3600)

        sweeper.start()
        assert sweeper.running

        await sweeper.stop()
        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_loop_sweeps_stale_records(self):
        import asyncio

        from access_gate.rate_limiter import RateLimiter
        from access_gate.sweeper import RateLimitSweeper

        clock = FakeClock()
        limiter = RateLimiter(max_requests=5, window_seconds=60, clock=clock)
        limiter.check("a")
        clock.advance(120)

        sweeper = RateLimitSweeper(limiter, interval_seconds=0.01)
        sweeper.start()
        try:
            for _ in range(100):
                if len(limiter) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.stop()

        assert len(limiter) == 0
