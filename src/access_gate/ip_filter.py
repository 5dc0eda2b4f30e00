"""Client identity resolution and IP allow-list matching."""

import math
from typing import Iterable, Optional

UNKNOWN_IDENTITY = "unknown"


def resolve_client_identity(
    peer_address: Optional[str],
    forwarded_for: Optional[str] = None,
    trust_forwarded_for: bool = False
) -> str:
    """
    Derive the identity used for rate limiting and IP filtering.

    Args:
        peer_address: Address of the connecting socket, if known
        forwarded_for: Raw ``X-Forwarded-For`` header value
        trust_forwarded_for: Prefer the forwarded chain over the peer
            (deployments behind a reverse proxy)

    Returns:
        The peer address, the first forwarded entry, or ``"unknown"``
    """
    forwarded = None
    if forwarded_for:
        forwarded = forwarded_for.split(",")[0].strip() or None

    if trust_forwarded_for and forwarded:
        return forwarded
    return peer_address or forwarded or UNKNOWN_IDENTITY


def matches_entry(address: str, entry: str) -> bool:
    """
    Check one address against one allow-list entry.

    ``network/prefix`` entries use a simplified match: the address must
    start with the first ``ceil(prefix / 8)`` dotted octets of the network.
    This is not a bitwise mask, so non byte-aligned prefixes such as
    ``/20`` match on three octets.
    """
    if "/" in entry:
        network, _, prefix = entry.partition("/")
        try:
            octets = math.ceil(int(prefix) / 8)
        except ValueError:
            return False
        return address.startswith(".".join(network.split(".")[:octets]))

    return address == entry or entry == "*"


def is_ip_allowed(address: str, allowed: Iterable[str]) -> bool:
    """An empty allow-list admits every address."""
    allowed = list(allowed)
    if not allowed:
        return True
    return any(matches_entry(address, entry) for entry in allowed)
