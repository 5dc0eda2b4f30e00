"""Access gate: the ordered pass/fail pipeline run before any tool.

Stages, first failure wins:

1. Public-path bypass (only when authentication is not required)
2. IP allow-list
3. Rate limit (the request is counted here)
4. Shared secret
"""

import hmac
from typing import Optional

from shared.config import AccessGateConfig
from shared.logging import get_logger, truncate_user_agent
from shared.models import AccessDecision, AccessOutcome
from access_gate.ip_filter import is_ip_allowed
from access_gate.rate_limiter import RateLimiter

logger = get_logger(__name__)


class AccessGate:
    """
    Evaluates every inbound request against the gate configuration.

    The rate limiter is injected so that its store can be shared with the
    sweeper and inspected in tests.
    """

    def __init__(self, config: AccessGateConfig, rate_limiter: Optional[RateLimiter] = None) -> None:
        self.config = config
        # An empty RateLimiter is falsy
        if rate_limiter is None:
            rate_limiter = RateLimiter(
                max_requests=config.max_requests_per_window,
                window_seconds=config.window_seconds,
            )
        self.rate_limiter = rate_limiter

    def evaluate(
        self,
        identity: str,
        supplied_secret: Optional[str],
        path: str,
        user_agent: Optional[str] = None
    ) -> AccessDecision:
        """
        Run the gate pipeline for one request.

        Args:
            identity: Client identity (normally the caller's address)
            supplied_secret: Shared secret presented by the caller, if any
            path: Request path
            user_agent: Client agent string, used for logging only

        Returns:
            The access decision
        """
        self._log_request(identity, user_agent, path, bool(supplied_secret))

        if not self.config.require_authentication and path in self.config.public_paths:
            return AccessDecision(outcome=AccessOutcome.ALLOWED, identity=identity, bypassed=True)

        if not is_ip_allowed(identity, self.config.allowed_ips):
            logger.warning("Access denied (IP not allowed)", client_ip=identity, path=path)
            return AccessDecision(outcome=AccessOutcome.DENIED_IP, identity=identity)

        rate = self.rate_limiter.check(identity)
        rate_fields = {
            "limit": rate.limit,
            "count": rate.count,
            "remaining": rate.remaining,
            "reset_at": rate.reset_at,
        }

        if not rate.allowed:
            logger.warning(
                "Access denied (rate limit)",
                client_ip=identity,
                path=path,
                count=rate.count,
                limit=rate.limit
            )
            return AccessDecision(outcome=AccessOutcome.DENIED_RATE_LIMIT, identity=identity, **rate_fields)

        if self.config.shared_secret and not self._secret_matches(supplied_secret):
            logger.warning("Access denied (invalid API key)", client_ip=identity, path=path)
            return AccessDecision(outcome=AccessOutcome.DENIED_AUTH, identity=identity, **rate_fields)

        return AccessDecision(outcome=AccessOutcome.ALLOWED, identity=identity, **rate_fields)

    def _secret_matches(self, supplied: Optional[str]) -> bool:
        if supplied is None:
            return False
        return hmac.compare_digest(supplied.encode(), self.config.shared_secret.encode())

    def _log_request(
        self,
        identity: str,
        user_agent: Optional[str],
        path: str,
        secret_supplied: bool
    ) -> None:
        logger.info(
            "Gateway request",
            client_ip=identity,
            user_agent=truncate_user_agent(user_agent),
            path=path,
            api_key_supplied=secret_supplied
        )

    def security_summary(self) -> dict[str, object]:
        """Security configuration as reported by the health endpoint."""
        return {
            "apiKeyRequired": bool(self.config.shared_secret),
            "ipWhitelistEnabled": len(self.config.allowed_ips) > 0,
            "rateLimitEnabled": True,
            "rateLimitMax": self.config.max_requests_per_window,
            "requireAuthentication": self.config.require_authentication,
        }
