"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request, trusted_proxies: set[str] | None = None) -> str:
    """Get the client IP address from a request.

    X-Forwarded-For and X-Real-IP can be spoofed by clients, so they are only
    honoured when the direct peer is one of ``trusted_proxies``. Otherwise the
    direct connection address is used.

    Args:
        request: The FastAPI request object
        trusted_proxies: Proxy addresses allowed to set forwarding headers

    Returns:
        Client IP address, or "unknown" if not available
    """
    direct_ip = request.client.host if request.client else None
    proxied = bool(trusted_proxies) and direct_ip in trusted_proxies

    if proxied:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning(f"Invalid IP in X-Forwarded-For header: {client_ip}")

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid IP in X-Real-IP header: {real_ip}")

    if direct_ip:
        return direct_ip

    return "unknown"


def get_user_agent(request: Request) -> str:
    """User-Agent header, or an empty string when absent."""
    return request.headers.get("User-Agent", "")


def get_bearer_token(request: Request) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None
