"""Hostname safety filter.

Blocks requests aimed at loopback, private and link-local targets before any
outbound call is made.  This is a shape check, not a DNS lookup: a hostname
passes only if it looks like a public domain name or a public IPv4 literal.
"""

from __future__ import annotations

import re

_IPV4_RE = re.compile(r"\d{1,3}(?:\.\d{1,3}){3}")
_HOSTNAME_RE = re.compile(r"(?:[a-z0-9-]+\.)+[a-z]{2,}")


def is_ipv4(hostname: str) -> bool:
    return _IPV4_RE.fullmatch(hostname) is not None


def is_private_ipv4(hostname: str) -> bool:
    """Return ``True`` for private, loopback and link-local IPv4 literals.

    Anything that is not four octets in 0-255 is also reported as private.
    """
    parts = hostname.split(".")
    if len(parts) != 4:
        return True
    try:
        octets = [int(p) for p in parts]
    except ValueError:
        return True
    if any(n < 0 or n > 255 for n in octets):
        return True

    a, b = octets[0], octets[1]
    if a in (0, 10, 127):
        return True
    if a == 169 and b == 254:
        return True
    if a == 192 and b == 168:
        return True
    if a == 172 and 16 <= b <= 31:
        return True
    return False


def is_safe_hostname(hostname: str) -> bool:
    """Return ``True`` when *hostname* is safe to fetch from the server side."""
    h = (hostname or "").lower()
    if not h:
        return False
    if h == "localhost" or h.endswith(".local"):
        return False
    # IPv6 literals and host:port strings
    if ":" in h:
        return False
    if is_ipv4(h):
        return not is_private_ipv4(h)
    return _HOSTNAME_RE.fullmatch(h) is not None
