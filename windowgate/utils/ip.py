"""Client IP extraction for default rate limit identifiers."""

from __future__ import annotations

from fastapi import Request

UNKNOWN_CLIENT = "unknown"
_IPV4_MAPPED_PREFIX = "::ffff:"


def extract_client_ip(request: Request, *, trust_proxy_headers: bool = True) -> str:
    """Best-effort client address for a request.

    Priority when proxy headers are trusted:
    1. First entry of X-Forwarded-For (the original client)
    2. X-Real-IP
    3. Socket peer address
    4. ``"unknown"``

    Args:
        request: Incoming request.
        trust_proxy_headers: Read forwarding headers set by a reverse proxy.

    Returns:
        IP address string, never empty.
    """
    if trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first_ip = forwarded_for.split(",")[0].strip()
            if first_ip:
                return first_ip

        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


def normalize_ip(ip: str) -> str:
    """Collapse IPv4-mapped IPv6 addresses (``::ffff:10.0.0.1`` -> ``10.0.0.1``)."""
    if ip.lower().startswith(_IPV4_MAPPED_PREFIX):
        return ip[len(_IPV4_MAPPED_PREFIX):]
    return ip


def get_default_identifier(request: Request, *, trust_proxy_headers: bool = True) -> str:
    return normalize_ip(extract_client_ip(request, trust_proxy_headers=trust_proxy_headers))
