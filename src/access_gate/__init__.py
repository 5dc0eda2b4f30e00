"""Access gate - IP allow-listing, rate limiting and shared-secret checks.

Every inbound request passes the gate before a tool is dispatched.
"""

from access_gate.gate import AccessGate
from access_gate.ip_filter import is_ip_allowed, matches_entry, resolve_client_identity
from access_gate.rate_limiter import RateLimiter
from access_gate.sweeper import RateLimitSweeper

__all__ = [
    "AccessGate",
    "RateLimiter",
    "RateLimitSweeper",
    "is_ip_allowed",
    "matches_entry",
    "resolve_client_identity",
]
